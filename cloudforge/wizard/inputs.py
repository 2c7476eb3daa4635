"""Immutable text inputs keyed by field name.

Every helper takes an inputs mapping and returns a new one, so phases can
be exercised without a terminal.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Mapping, Optional

Inputs = Mapping[str, "TextInput"]


@dataclass(frozen=True)
class TextInput:
    value: str = ""
    placeholder: str = ""
    char_limit: int = 0         # 0 = unlimited
    password: bool = False
    focused: bool = False

    def with_value(self, value: str) -> "TextInput":
        if self.char_limit > 0:
            value = value[: self.char_limit]
        return replace(self, value=value)


def new_input(placeholder: str = "", char_limit: int = 0, value: str = "", password: bool = False) -> TextInput:
    return TextInput(placeholder=placeholder, char_limit=char_limit, password=password).with_value(value)


def focus_input(inputs: Inputs, name: str) -> dict[str, TextInput]:
    """Focus ``name`` and blur every other input."""
    out = {k: replace(v, focused=(k == name)) for k, v in inputs.items()}
    return out


def blur_input(inputs: Inputs, name: str) -> dict[str, TextInput]:
    out = dict(inputs)
    if name in out:
        out[name] = replace(out[name], focused=False)
    return out


def blur_all(inputs: Inputs) -> dict[str, TextInput]:
    return {k: replace(v, focused=False) for k, v in inputs.items()}


def set_value(inputs: Inputs, name: str, value: str) -> dict[str, TextInput]:
    out = dict(inputs)
    if name in out:
        out[name] = out[name].with_value(value)
    return out


def apply_key(inputs: Inputs, name: str, key: str, character: Optional[str] = None) -> dict[str, TextInput]:
    """Edit input ``name`` with one key press.

    Handles backspace, ctrl+u (clear) and printable characters; any other
    key leaves the inputs unchanged.
    """
    ti = inputs.get(name)
    if ti is None:
        return dict(inputs)
    if key == "backspace":
        new = ti.with_value(ti.value[:-1])
    elif key == "ctrl+u":
        new = ti.with_value("")
    elif key == "space":
        new = ti.with_value(ti.value + " ")
    elif character and len(character) == 1 and character.isprintable():
        if ti.char_limit and len(ti.value) >= ti.char_limit:
            return dict(inputs)
        new = ti.with_value(ti.value + character)
    else:
        return dict(inputs)
    out = dict(inputs)
    out[name] = new
    return out


def render_input(ti: Optional[TextInput]) -> str:
    """Rich markup for an input's current value."""
    if ti is None:
        return ""
    if not ti.value:
        text = f"[dim]{_escape(ti.placeholder)}[/dim]" if ti.placeholder else ""
    elif ti.password:
        text = "•" * len(ti.value)
    else:
        text = _escape(ti.value)
    if ti.focused:
        text += "[reverse] [/reverse]"
    return text


def _escape(s: str) -> str:
    return s.replace("[", "\\[")
