"""Package selection with select-all/none and presets."""

from __future__ import annotations

import logging
from typing import Any

from rich.markup import escape

from cloudforge.packages import CATEGORY_ORDER, Package
from cloudforge.settings import PackagePreset, SettingsError, default_package_presets
from cloudforge.wizard.fields import hint, section_title
from cloudforge.wizard.handler import DYNAMIC_FIELDS, BasePhase, Cmd, PhaseContext
from cloudforge.wizard.messages import KeyPress
from cloudforge.wizard.snapshot import apply_package_preset, preset_message

logger = logging.getLogger(__name__)


def available_presets(ctx: PhaseContext) -> list[PackagePreset]:
    """Built-in presets followed by the user's own."""
    presets = default_package_presets()
    if ctx.store is None:
        return presets
    try:
        stored = ctx.store.load().package_presets
    except SettingsError as e:
        logger.warning("Could not load package presets: %s", e)
        return presets
    seen = {p.id for p in presets}
    presets.extend(p for p in stored if p.id not in seen)
    return presets


class PackagesPhase(BasePhase):
    def __init__(self):
        super().__init__("Packages", DYNAMIC_FIELDS)
        self._picker_open = False
        self._presets: list[PackagePreset] = []
        self._preset_idx = 0

    def ordered(self, ctx: PhaseContext) -> list[Package]:
        """Registry packages in category display order."""
        registry = ctx.wizard.registry
        if registry is None:
            return []
        out: list[Package] = []
        for cat in CATEGORY_ORDER:
            out.extend(sorted(registry.by_category.get(cat, []), key=lambda p: p.name))
        return out

    def init(self, ctx: PhaseContext) -> Cmd:
        w = ctx.wizard
        w.focused_field = 0
        self._picker_open = False
        if not w.package_selected:
            if w.data.packages:
                w.package_selected = {name: True for name in w.data.packages}
            else:
                # First visit: everything on
                w.package_selected = {p.name: True for p in self.ordered(ctx)}
        return None

    def is_modal(self, ctx: PhaseContext) -> bool:
        return self._picker_open

    def update(self, ctx: PhaseContext, msg: Any) -> tuple[bool, Cmd]:
        if not isinstance(msg, KeyPress):
            return False, None
        if self._picker_open:
            self._picker_key(ctx, msg)
            return False, None

        w, keys = ctx.wizard, ctx.keys
        pkgs = self.ordered(ctx)
        if keys.matches(msg.key, "up"):
            w.navigate_field(-1, len(pkgs) - 1)
        elif keys.matches(msg.key, "down"):
            w.navigate_field(1, len(pkgs) - 1)
        elif keys.matches(msg.key, "toggle"):
            if pkgs:
                name = pkgs[w.focused_field].name
                w.package_selected[name] = not w.package_selected.get(name, False)
        elif keys.matches(msg.key, "select_all"):
            for p in pkgs:
                w.package_selected[p.name] = True
        elif keys.matches(msg.key, "select_none"):
            for name in w.package_selected:
                w.package_selected[name] = False
        elif keys.matches(msg.key, "presets"):
            self._presets = available_presets(ctx)
            self._preset_idx = 0
            self._picker_open = bool(self._presets)
        elif keys.matches(msg.key, "confirm"):
            return True, None
        return False, None

    def _picker_key(self, ctx: PhaseContext, msg: KeyPress) -> None:
        keys = ctx.keys
        if keys.matches(msg.key, "back"):
            self._picker_open = False
        elif keys.matches(msg.key, "up"):
            self._preset_idx = max(0, self._preset_idx - 1)
        elif keys.matches(msg.key, "down"):
            self._preset_idx = min(len(self._presets) - 1, self._preset_idx + 1)
        elif keys.matches(msg.key, "confirm"):
            preset = self._presets[self._preset_idx]
            result = apply_package_preset(preset, ctx.wizard)
            if result.invalid:
                logger.info("Preset %s skipped unknown packages: %s", preset.id, ", ".join(result.invalid))
            ctx.message = preset_message(preset, result)
            self._picker_open = False

    def save(self, ctx: PhaseContext) -> None:
        ctx.wizard.data.packages = ctx.wizard.selected_packages()

    # -- rendering ------------------------------------------------------

    def view(self, ctx: PhaseContext) -> str:
        if self._picker_open:
            return self._view_picker(ctx)
        w = ctx.wizard
        pkgs = self.ordered(ctx)
        selected = sum(1 for p in pkgs if w.package_selected.get(p.name))
        out = [section_title("Package Selection"),
               f" [dim]{selected}/{len(pkgs)} selected[/dim]\n"]
        if not pkgs:
            out.append("\n [dim]No packages discovered[/dim]\n")
        category = None
        for i, pkg in enumerate(pkgs):
            if pkg.category != category:
                category = pkg.category
                out.append(f"\n [bold]{category.value}[/bold]\n")
            focused = w.focused_field == i
            cursor = "[bold]>[/bold]" if focused else " "
            mark = "[bold green]✓[/bold green]" if w.package_selected.get(pkg.name) else "[dim]○[/dim]"
            name = escape(pkg.display_name or pkg.name)
            if focused:
                name = f"[bold]{name}[/bold]"
            desc = f"  [dim]{escape(pkg.description)}[/dim]" if pkg.description else ""
            out.append(f" {cursor} {mark} {name}{desc}\n")
        k = ctx.keys
        out.append(hint(
            f"{k.help('toggle')} toggle   {k.help('select_all')} all   {k.help('select_none')} none   "
            f"{k.help('presets')} presets   {k.help('confirm')} continue"
        ))
        return "".join(out)

    def _view_picker(self, ctx: PhaseContext) -> str:
        out = [section_title("Package Presets"), "\n"]
        for i, preset in enumerate(self._presets):
            focused = i == self._preset_idx
            cursor = "[bold]>[/bold]" if focused else " "
            name = escape(preset.name)
            if focused:
                name = f"[bold green]{name}[/bold green]"
            tag = " [dim](built-in)[/dim]" if preset.is_builtin else ""
            out.append(f" {cursor} {name}{tag}  [dim]{len(preset.packages)} packages[/dim]\n")
            if preset.description:
                out.append(f"     [dim]{escape(preset.description)}[/dim]\n")
        k = ctx.keys
        out.append(hint(f"{k.help('confirm')} apply   {k.help('back')} cancel"))
        return "".join(out)
