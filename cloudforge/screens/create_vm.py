"""Create VM wizard screen.

A single Static holds the rendered phase. Key presses go to the wizard
controller; any commands it returns run in thread workers and their
results come back through ``call_from_thread``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from textual import work
from textual.app import ComposeResult
from textual.containers import VerticalScroll
from textual.css.query import NoMatches
from textual.screen import Screen
from textual.widgets import Footer, Header, Static

from cloudforge.wizard.controller import WizardController
from cloudforge.wizard.handler import Command
from cloudforge.wizard.messages import KeyPress

logger = logging.getLogger(__name__)

# Left to App bindings
_PASSTHROUGH_KEYS = ("ctrl+q", "ctrl+c")


class CreateVMScreen(Screen):
    """Keyboard-driven VM creation wizard."""

    def __init__(self, controller: WizardController):
        super().__init__()
        self.controller = controller

    def compose(self) -> ComposeResult:
        yield Header()
        with VerticalScroll(id="wizard-scroll"):
            yield Static("", id="wizard-body", markup=True)
        yield Footer()

    def on_mount(self) -> None:
        self._run_commands(self.controller.start())
        self._refresh_body()

    def on_key(self, event) -> None:
        if event.key in _PASSTHROUGH_KEYS:
            return
        event.prevent_default()
        event.stop()
        self._run_commands(self.controller.update(KeyPress(event.key, event.character)))
        self._refresh_body()

    def _run_commands(self, cmds: Optional[list[Command]]) -> None:
        for cmd in cmds or []:
            self._run_command(cmd)

    @work(thread=True)
    def _run_command(self, cmd: Command) -> None:
        """Run one blocking command and hand its message back to the UI."""
        try:
            msg = cmd()
        except Exception as e:
            logger.exception("Background command failed")
            self.app.call_from_thread(
                self.app.notify, f"Background task failed: {e}", severity="error",
            )
            return
        if msg is not None:
            self.app.call_from_thread(self._deliver_message, msg)

    def _deliver_message(self, msg: Any) -> None:
        self._run_commands(self.controller.update(msg))
        self._refresh_body()

    def _refresh_body(self) -> None:
        try:
            body = self.query_one("#wizard-body", Static)
        except NoMatches:
            return
        body.update(self.controller.view())
