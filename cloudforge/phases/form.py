"""Generic form phase: a vertical list of text, select and checkbox fields."""

from __future__ import annotations

from typing import Any

from cloudforge.wizard.fields import CHECK, SELECT, TEXT, Field, hint, render_field, section_title
from cloudforge.wizard.handler import BasePhase, Cmd, PhaseContext
from cloudforge.wizard.messages import KeyPress


class FormPhase(BasePhase):
    """Enter on the last field advances; Enter elsewhere moves down.

    Subclasses provide ``fields``, ``seed`` (UI state from the wizard data)
    and ``save``.
    """

    title = ""
    subtitle = ""

    def __init__(self, name: str, fields: list[Field]):
        super().__init__(name, len(fields))
        self.fields = fields

    def seed(self, ctx: PhaseContext) -> None:
        pass

    def init(self, ctx: PhaseContext) -> Cmd:
        ctx.wizard.focused_field = 0
        self.seed(ctx)
        self.sync_focus(ctx)
        return None

    def current(self, ctx: PhaseContext) -> Field:
        idx = min(ctx.wizard.focused_field, len(self.fields) - 1)
        return self.fields[idx]

    def sync_focus(self, ctx: PhaseContext) -> None:
        """Give the cursor to the focused text input, if any."""
        field = self.current(ctx)
        ctx.wizard.focus_input(field.name if field.kind == TEXT else None)

    def move(self, ctx: PhaseContext, delta: int) -> None:
        ctx.wizard.navigate_field(delta, len(self.fields) - 1)
        self.sync_focus(ctx)

    def update(self, ctx: PhaseContext, msg: Any) -> tuple[bool, Cmd]:
        if not isinstance(msg, KeyPress):
            return False, None
        wizard, keys = ctx.wizard, ctx.keys
        field = self.current(ctx)
        typing = field.kind == TEXT

        if keys.matches(msg.key, "up", typing):
            self.move(ctx, -1)
        elif keys.matches(msg.key, "down", typing):
            self.move(ctx, 1)
        elif keys.matches(msg.key, "confirm"):
            if wizard.focused_field >= len(self.fields) - 1:
                return True, None
            self.move(ctx, 1)
        elif field.kind == SELECT and keys.matches(msg.key, "left"):
            wizard.cycle_select(field.name, len(field.options), -1)
        elif field.kind == SELECT and keys.matches(msg.key, "right"):
            wizard.cycle_select(field.name, len(field.options), 1)
        elif field.kind == CHECK and keys.matches(msg.key, "toggle"):
            wizard.toggle_check(field.name)
        elif typing:
            wizard.edit_input(field.name, msg.key, msg.character)
        return False, None

    def view(self, ctx: PhaseContext) -> str:
        out = [section_title(self.title or self.name)]
        if self.subtitle:
            out.append(f" [dim]{self.subtitle}[/dim]\n")
        out.append("\n")
        for idx, field in enumerate(self.fields):
            out.append(render_field(ctx.wizard, field, idx))
        out.append(hint(form_help(ctx)))
        return "".join(out)


def form_help(ctx: PhaseContext) -> str:
    k = ctx.keys
    return (
        f"{k.help('up')}/{k.help('down')} move   {k.help('left')}/{k.help('right')} change   "
        f"{k.help('toggle')} toggle   {k.help('confirm')} next   {k.help('back')} back"
    )
