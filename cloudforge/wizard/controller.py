"""Routes key presses and worker messages to the active phase handler."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from rich.markup import escape

from cloudforge.wizard.handler import Command, PhaseContext, PhaseHandler, batch
from cloudforge.wizard.messages import KeyPress
from cloudforge.wizard.phase import Phase, total_phases

logger = logging.getLogger(__name__)


class WizardController:
    """Owns the navigation rules around a registry of phase handlers.

    Escape is handled here, before the phase sees it, unless the phase is
    showing a modal overlay. A phase with no handler renders nothing and
    ignores input.
    """

    def __init__(self, ctx: PhaseContext, handlers: Mapping[Phase, PhaseHandler]):
        self.ctx = ctx
        self.handlers = dict(handlers)

    @property
    def phase(self) -> Phase:
        return self.ctx.wizard.phase

    def handler(self, phase: Optional[Phase] = None) -> Optional[PhaseHandler]:
        return self.handlers.get(self.phase if phase is None else phase)

    def start(self) -> Optional[list[Command]]:
        """Initialise the current phase; call once before the first update."""
        return self._init_current()

    def _init_current(self) -> Optional[list[Command]]:
        handler = self.handler()
        if handler is None:
            logger.warning("No handler registered for phase %s", self.phase.name)
            return None
        self.ctx.wizard.focused_field = 0
        return batch(handler.init(self.ctx))

    def update(self, msg: Any) -> Optional[list[Command]]:
        ctx = self.ctx
        wizard = ctx.wizard
        handler = self.handler()
        if handler is None:
            return None

        if (
            isinstance(msg, KeyPress)
            and ctx.keys.matches(msg.key, "back")
            and not handler.is_modal(ctx)
            and wizard.can_go_back()
        ):
            ctx.message = ""
            wizard.go_back()
            return self._init_current()

        ctx.jump_target = None
        advance, cmd = handler.update(ctx, msg)

        if ctx.jump_target is not None:
            target = ctx.jump_target
            ctx.jump_target = None
            wizard.jump(target)
            return batch(cmd, self._init_current())

        if advance:
            handler.save(ctx)
            wizard.advance()
            return batch(cmd, self._init_current())

        return batch(cmd)

    def reset(self) -> Optional[list[Command]]:
        self.ctx.wizard.reset()
        self.ctx.message = ""
        return self._init_current()

    # -- rendering ------------------------------------------------------

    def phase_indicator(self) -> str:
        current = self.phase
        parts = []
        for phase in Phase:
            if phase == current:
                parts.append(f"[bold cyan]{phase.display_name}[/bold cyan]")
            elif phase < current:
                parts.append(f"[green]✓[/green] [dim]{phase.display_name}[/dim]")
            else:
                parts.append(f"[dim]{phase.display_name}[/dim]")
        step = f"[dim]Step {int(current) + 1}/{total_phases()}[/dim]"
        return f" {step}  " + " [dim]›[/dim] ".join(parts)

    def view(self) -> str:
        handler = self.handler()
        body = handler.view(self.ctx) if handler is not None else ""
        out = [self.phase_indicator(), "", body]
        if self.ctx.message:
            out.append(f"\n [yellow]{escape(self.ctx.message)}[/yellow]")
        return "\n".join(out)
