"""Mutable wizard state shared by every phase handler."""

from __future__ import annotations

from typing import Any, Optional

from cloudforge.models import WizardData
from cloudforge.packages import PackageRegistry
from cloudforge.wizard import inputs as ti
from cloudforge.wizard.inputs import TextInput
from cloudforge.wizard.phase import NEXT, NO_BACK, PREV, Phase


class WizardState:
    """Current phase, collected data and per-field UI state.

    The package registry outlives a wizard session and survives ``reset``.
    """

    def __init__(self, registry: Optional[PackageRegistry] = None):
        self.registry = registry
        self.reset()

    def reset(self) -> None:
        self.phase = Phase.TARGET
        self.data = WizardData()
        self.focused_field = 0
        self.target_selected = 0
        self.text_inputs: dict[str, TextInput] = {}
        self.select_idx: dict[str, int] = {}
        self.check_states: dict[str, bool] = {}
        self.package_selected: dict[str, bool] = {}
        self.ssh_key_selected: dict[str, bool] = {}
        self.deploying = False
        # Owned by the deploy and complete phases
        self.deploy_state: Any = None

    # -- navigation -----------------------------------------------------

    def can_go_back(self) -> bool:
        return self.phase not in NO_BACK

    def next_phase(self) -> Phase:
        return NEXT[self.phase]

    def prev_phase(self) -> Phase:
        return PREV[self.phase]

    def advance(self) -> None:
        self.phase = self.next_phase()
        self.focused_field = 0

    def go_back(self) -> bool:
        if not self.can_go_back():
            return False
        self.phase = self.prev_phase()
        self.focused_field = 0
        return True

    def jump(self, phase: Phase) -> None:
        self.phase = phase
        self.focused_field = 0

    # -- field primitives -----------------------------------------------

    def navigate_field(self, delta: int, max_field: int) -> None:
        """Move focus by ``delta``, clamped to ``[0, max_field]``."""
        max_field = max(0, max_field)
        self.focused_field = max(0, min(max_field, self.focused_field + delta))

    def cycle_select(self, name: str, option_count: int, delta: int) -> None:
        """Step a select field by ``delta``, wrapping at both ends."""
        if option_count <= 0:
            return
        self.select_idx[name] = (self.select_idx.get(name, 0) + delta) % option_count

    # -- text inputs ----------------------------------------------------

    def init_input(
        self, name: str, placeholder: str = "", char_limit: int = 0,
        value: str = "", password: bool = False,
    ) -> None:
        self.text_inputs = dict(self.text_inputs)
        self.text_inputs[name] = ti.new_input(placeholder, char_limit, value, password)

    def input_value(self, name: str) -> str:
        field = self.text_inputs.get(name)
        return field.value if field else ""

    def set_input_value(self, name: str, value: str) -> None:
        self.text_inputs = ti.set_value(self.text_inputs, name, value)

    def focus_input(self, name: Optional[str]) -> None:
        """Focus ``name``, or blur every input when ``name`` is None."""
        if name is None:
            self.text_inputs = ti.blur_all(self.text_inputs)
        else:
            self.text_inputs = ti.focus_input(self.text_inputs, name)

    def edit_input(self, name: str, key: str, character: Optional[str]) -> None:
        self.text_inputs = ti.apply_key(self.text_inputs, name, key, character)

    # -- selects and checkboxes -----------------------------------------

    def get_select(self, name: str) -> int:
        return self.select_idx.get(name, 0)

    def set_select(self, name: str, idx: int) -> None:
        self.select_idx[name] = idx

    def get_check(self, name: str) -> bool:
        return self.check_states.get(name, False)

    def set_check(self, name: str, checked: bool) -> None:
        self.check_states[name] = checked

    def toggle_check(self, name: str) -> None:
        self.check_states[name] = not self.check_states.get(name, False)

    def selected_packages(self) -> list[str]:
        return sorted(name for name, on in self.package_selected.items() if on)
