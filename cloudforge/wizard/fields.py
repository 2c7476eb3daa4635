"""Rich-markup rendering for wizard form fields."""

from __future__ import annotations

from dataclasses import dataclass

from rich.markup import escape

from cloudforge.wizard.inputs import render_input
from cloudforge.wizard.state import WizardState

TEXT = "text"
SELECT = "select"
CHECK = "check"


@dataclass(frozen=True)
class Field:
    kind: str
    name: str
    label: str
    options: tuple[str, ...] = ()


def _cursor(focused: bool) -> str:
    return "[bold]>[/bold]" if focused else " "


def _label(label: str, focused: bool) -> str:
    return f"[bold]{escape(label)}:[/bold]" if focused else f"{escape(label)}:"


def section_title(text: str) -> str:
    return f" [bold cyan]{escape(text)}[/bold cyan]\n"


def hint(text: str) -> str:
    return f"\n [dim]{escape(text)}[/dim]\n"


def render_text_field(wizard: WizardState, label: str, name: str, idx: int) -> str:
    focused = wizard.focused_field == idx
    return f" {_cursor(focused)}  {_label(label, focused)}  {render_input(wizard.text_inputs.get(name))}\n"


def render_select_field(
    wizard: WizardState, label: str, name: str, idx: int, options: tuple[str, ...] | list[str],
) -> str:
    focused = wizard.focused_field == idx
    sel = wizard.get_select(name)
    value = ""
    if 0 <= sel < len(options):
        if focused:
            value = f"[dim]◀[/dim] [bold green]{escape(options[sel])}[/bold green] [dim]▶[/dim]"
        else:
            value = escape(options[sel])
    return f" {_cursor(focused)}  {_label(label, focused)}  {value}\n"


def render_checkbox(wizard: WizardState, label: str, name: str, idx: int) -> str:
    focused = wizard.focused_field == idx
    if wizard.get_check(name):
        mark = "[bold green]✓ ON[/bold green]"
    else:
        mark = "[bold red]✗ OFF[/bold red]"
    lbl = f"[bold]{escape(label)}[/bold]" if focused else escape(label)
    return f" {_cursor(focused)} {mark}  {lbl}\n"


def render_field(wizard: WizardState, field: Field, idx: int) -> str:
    if field.kind == TEXT:
        return render_text_field(wizard, field.label, field.name, idx)
    if field.kind == SELECT:
        return render_select_field(wizard, field.label, field.name, idx, field.options)
    return render_checkbox(wizard, field.label, field.name, idx)
