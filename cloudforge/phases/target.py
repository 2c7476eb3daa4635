"""Target selection, plus the saved-profile picker."""

from __future__ import annotations

import logging
from typing import Any

from rich.markup import escape

from cloudforge.settings import SettingsError, VMConfig
from cloudforge.wizard.fields import hint, section_title
from cloudforge.wizard.handler import BasePhase, Cmd, PhaseContext
from cloudforge.wizard.messages import KeyPress
from cloudforge.wizard.options import TARGETS, target_index
from cloudforge.wizard.phase import Phase
from cloudforge.wizard.snapshot import load_from_config

logger = logging.getLogger(__name__)


class TargetPhase(BasePhase):
    def __init__(self):
        super().__init__("Select Target", len(TARGETS))
        self._picker_open = False
        self._configs: list[VMConfig] = []
        self._picker_idx = 0

    def init(self, ctx: PhaseContext) -> Cmd:
        ctx.wizard.focused_field = 0
        self._picker_open = False
        if ctx.wizard.data.target is not None:
            ctx.wizard.target_selected = target_index(ctx.wizard.data.target)
        return None

    def is_modal(self, ctx: PhaseContext) -> bool:
        return self._picker_open

    def update(self, ctx: PhaseContext, msg: Any) -> tuple[bool, Cmd]:
        if not isinstance(msg, KeyPress):
            return False, None
        if self._picker_open:
            self._picker_key(ctx, msg)
            return False, None

        wizard, keys = ctx.wizard, ctx.keys
        if keys.matches(msg.key, "up"):
            wizard.target_selected = max(0, wizard.target_selected - 1)
        elif keys.matches(msg.key, "down"):
            wizard.target_selected = min(len(TARGETS) - 1, wizard.target_selected + 1)
        elif keys.matches(msg.key, "load_config"):
            self._open_picker(ctx)
        elif keys.matches(msg.key, "confirm"):
            ctx.message = ""
            return True, None
        return False, None

    def save(self, ctx: PhaseContext) -> None:
        idx = min(max(ctx.wizard.target_selected, 0), len(TARGETS) - 1)
        ctx.wizard.data.target = TARGETS[idx][0]

    # -- profile picker -------------------------------------------------

    def _open_picker(self, ctx: PhaseContext) -> None:
        configs: list[VMConfig] = []
        if ctx.store is not None:
            try:
                configs = ctx.store.load().vm_configs
            except SettingsError as e:
                logger.warning("Could not load saved configs: %s", e)
                ctx.message = f"Failed to load configs: {e}"
                return
        if not configs:
            ctx.message = "No saved configs available"
            return
        self._configs = sorted(
            configs, key=lambda c: c.last_used_at or c.created_at, reverse=True,
        )
        self._picker_idx = 0
        self._picker_open = True
        ctx.message = ""

    def _picker_key(self, ctx: PhaseContext, msg: KeyPress) -> None:
        keys = ctx.keys
        if keys.matches(msg.key, "back"):
            self._picker_open = False
        elif keys.matches(msg.key, "up"):
            self._picker_idx = max(0, self._picker_idx - 1)
        elif keys.matches(msg.key, "down"):
            self._picker_idx = min(len(self._configs) - 1, self._picker_idx + 1)
        elif keys.matches(msg.key, "confirm"):
            self._load(ctx, self._configs[self._picker_idx])

    def _load(self, ctx: PhaseContext, cfg: VMConfig) -> None:
        load_from_config(cfg, ctx.wizard)
        self._picker_open = False
        if ctx.store is not None:
            try:
                ctx.store.load_and_save(lambda s: s.update_vm_config_last_used(cfg.id))
            except SettingsError as e:
                logger.warning("Could not update last-used time for %s: %s", cfg.name, e)
        logger.info("Loaded saved config %s (%s)", cfg.name, cfg.target)
        ctx.message = f"Loaded config: {cfg.name}"
        ctx.jump_to(Phase.REVIEW)

    # -- rendering ------------------------------------------------------

    def view(self, ctx: PhaseContext) -> str:
        if self._picker_open:
            return self._view_picker(ctx)
        out = [section_title("Where should this machine run?"), "\n"]
        selected = ctx.wizard.target_selected
        for i, (target, desc) in enumerate(TARGETS):
            if i == selected:
                out.append(f" [bold]>[/bold] [bold green]{target.display_name}[/bold green]\n")
            else:
                out.append(f"   {target.display_name}\n")
            out.append(f"     [dim]{escape(desc)}[/dim]\n")
        k = ctx.keys
        out.append(hint(
            f"{k.help('up')}/{k.help('down')} select   {k.help('confirm')} continue   "
            f"{k.help('load_config')} load saved config"
        ))
        return "".join(out)

    def _view_picker(self, ctx: PhaseContext) -> str:
        out = [section_title("Load Saved Config"), "\n"]
        for i, cfg in enumerate(self._configs):
            cursor = "[bold]>[/bold]" if i == self._picker_idx else " "
            name = escape(cfg.name)
            if i == self._picker_idx:
                name = f"[bold green]{name}[/bold green]"
            when = cfg.last_used_at or cfg.created_at
            out.append(f" {cursor} {name}  [dim]{escape(cfg.target)} · {when:%Y-%m-%d %H:%M}[/dim]\n")
            if cfg.description:
                out.append(f"     [dim]{escape(cfg.description)}[/dim]\n")
        k = ctx.keys
        out.append(hint(f"{k.help('confirm')} load   {k.help('back')} cancel"))
        return "".join(out)
