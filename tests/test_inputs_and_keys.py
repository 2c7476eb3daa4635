"""Tests for the immutable text inputs and the key map."""

import pytest

from cloudforge.wizard import inputs as ti
from cloudforge.wizard.keys import KeyMap


class TestTextInputs:
    """Pure helpers return new mappings."""

    def test_focus_blurs_others(self):
        inputs = {"a": ti.new_input(), "b": ti.new_input()}
        out = ti.focus_input(inputs, "b")
        assert out["b"].focused and not out["a"].focused
        assert not inputs["b"].focused

    def test_apply_key_typing_and_backspace(self):
        inputs = {"name": ti.new_input()}
        for ch in "dev":
            inputs = ti.apply_key(inputs, "name", ch, ch)
        assert inputs["name"].value == "dev"
        inputs = ti.apply_key(inputs, "name", "backspace")
        assert inputs["name"].value == "de"
        inputs = ti.apply_key(inputs, "name", "ctrl+u")
        assert inputs["name"].value == ""

    def test_char_limit(self):
        inputs = {"h": ti.new_input(char_limit=3)}
        for ch in "abcdef":
            inputs = ti.apply_key(inputs, "h", ch, ch)
        assert inputs["h"].value == "abc"

    def test_unknown_name_unchanged(self):
        inputs = {"a": ti.new_input(value="x")}
        assert ti.apply_key(inputs, "missing", "z", "z") == inputs

    def test_non_printable_key_ignored(self):
        inputs = {"a": ti.new_input(value="x")}
        out = ti.apply_key(inputs, "a", "left", None)
        assert out["a"].value == "x"

    def test_password_is_masked(self):
        rendered = ti.render_input(ti.new_input(value="secret", password=True))
        assert "secret" not in rendered
        assert "••••••" in rendered

    def test_placeholder_shown_when_empty(self):
        assert "ubuntu" in ti.render_input(ti.new_input(placeholder="ubuntu"))


class TestKeyMap:
    """Bindings built from config."""

    def test_defaults(self):
        keys = KeyMap()
        assert keys.matches("enter", "confirm")
        assert keys.matches("j", "down")
        assert keys.matches("escape", "back")

    def test_single_characters_ignored_while_typing(self):
        keys = KeyMap()
        assert not keys.matches("j", "down", typing=True)
        assert keys.matches("down", "down", typing=True)
        assert keys.matches("tab", "down", typing=True)

    def test_from_dict_overrides(self):
        keys = KeyMap.from_dict({"confirm": ["enter", "ctrl+s"]})
        assert keys.matches("ctrl+s", "confirm")
        assert keys.matches("escape", "back")

    def test_from_dict_rejects_unknown_action(self):
        with pytest.raises(ValueError):
            KeyMap.from_dict({"launch": ["x"]})

    def test_help(self):
        assert KeyMap().help("up") == "up/k"
