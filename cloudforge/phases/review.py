"""Review the collected settings; deploy, save as a named config, or cancel."""

from __future__ import annotations

import logging
from typing import Any

from rich.markup import escape

from cloudforge.models import DeploymentTarget, WizardData
from cloudforge.settings import SettingsError, sanitize_config_name, validate_config_name
from cloudforge.wizard.fields import hint, section_title
from cloudforge.wizard.handler import BasePhase, Cmd, PhaseContext
from cloudforge.wizard.inputs import render_input
from cloudforge.wizard.messages import KeyPress
from cloudforge.wizard.phase import Phase
from cloudforge.wizard.snapshot import to_vm_config

logger = logging.getLogger(__name__)

CONFIRM, SAVE_CONFIG, CANCEL = range(3)
BUTTONS = ("Confirm & Deploy", "Save as Config", "Cancel")
CONFIG_NAME_INPUT = "config_name"


def _row(label: str, value: str) -> str:
    shown = f"[green]{escape(value)}[/green]" if value else "[dim](none)[/dim]"
    return f"   {label + ':':<14} {shown}\n"


def _secret(value: str) -> str:
    return "configured" if value else ""


def target_rows(data: WizardData) -> list[str]:
    target = data.target
    if target == DeploymentTarget.MULTIPASS:
        mp = data.multipass
        return [
            _row("VM Name", mp.vm_name),
            _row("Image", mp.ubuntu_version),
            _row("Resources", f"{mp.cpus} CPU, {mp.memory_mb // 1024} GB RAM, {mp.disk_gb} GB disk"),
            _row("Keep on fail", "yes" if mp.keep_on_failure else "no"),
        ]
    if target == DeploymentTarget.TERRAFORM:
        tf = data.terraform
        return [
            _row("VM Name", tf.vm_name),
            _row("Resources", f"{tf.cpus} CPU, {tf.memory_mb // 1024} GB RAM, {tf.disk_gb} GB disk"),
            _row("Image", tf.ubuntu_image),
            _row("Libvirt URI", tf.libvirt_uri),
        ]
    if target == DeploymentTarget.USB:
        usb = data.usb
        return [
            _row("Source ISO", usb.source_iso),
            _row("Output", usb.output_path or "(automatic)"),
            _row("Storage", usb.storage_layout),
            _row("Timezone", usb.timezone),
        ]
    gen = data.generate
    return [
        _row("Output Dir", gen.output_dir),
        _row("Cloud-init", "yes" if gen.generate_cloud_init else "no"),
    ]


class ReviewPhase(BasePhase):
    def __init__(self):
        super().__init__("Review", len(BUTTONS))
        self._dialog_open = False

    def init(self, ctx: PhaseContext) -> Cmd:
        ctx.wizard.focused_field = CONFIRM
        self._dialog_open = False
        ctx.wizard.init_input(CONFIG_NAME_INPUT, placeholder="my-dev-box",
                              char_limit=50)
        return None

    def is_modal(self, ctx: PhaseContext) -> bool:
        return self._dialog_open

    def update(self, ctx: PhaseContext, msg: Any) -> tuple[bool, Cmd]:
        if not isinstance(msg, KeyPress):
            return False, None
        if self._dialog_open:
            self._dialog_key(ctx, msg)
            return False, None

        w, keys = ctx.wizard, ctx.keys
        if keys.matches(msg.key, "up") or keys.matches(msg.key, "left"):
            w.navigate_field(-1, len(BUTTONS) - 1)
        elif keys.matches(msg.key, "down") or keys.matches(msg.key, "right"):
            w.navigate_field(1, len(BUTTONS) - 1)
        elif keys.matches(msg.key, "confirm"):
            if w.focused_field == CONFIRM:
                ctx.message = ""
                return True, None
            if w.focused_field == SAVE_CONFIG:
                w.set_input_value(CONFIG_NAME_INPUT, "")
                w.focus_input(CONFIG_NAME_INPUT)
                self._dialog_open = True
            elif w.focused_field == CANCEL:
                ctx.message = ""
                ctx.jump_to(Phase.TARGET)
        return False, None

    def _dialog_key(self, ctx: PhaseContext, msg: KeyPress) -> None:
        w, keys = ctx.wizard, ctx.keys
        if keys.matches(msg.key, "back"):
            w.set_input_value(CONFIG_NAME_INPUT, "")
            w.focus_input(None)
            self._dialog_open = False
        elif keys.matches(msg.key, "confirm"):
            self.save_config(ctx)
        else:
            w.edit_input(CONFIG_NAME_INPUT, msg.key, msg.character)

    def save_config(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        name = sanitize_config_name(w.input_value(CONFIG_NAME_INPUT))
        try:
            validate_config_name(name)
        except ValueError as e:
            ctx.message = str(e)
            return

        if ctx.store is None:
            ctx.message = "Settings store not available"
        else:
            cfg = to_vm_config(w.data, name)
            try:
                ctx.store.load_and_save(lambda s: s.add_vm_config(cfg))
            except SettingsError as e:
                logger.error("Saving config %s failed: %s", name, e)
                ctx.message = f"Failed to save config: {e}"
            else:
                logger.info("Saved config %s", name)
                ctx.message = f"Saved config: {name}"

        w.focus_input(None)
        self._dialog_open = False

    def view(self, ctx: PhaseContext) -> str:
        w = ctx.wizard
        if self._dialog_open:
            return "".join([
                section_title("Save as Config"),
                "\n [dim]Save these settings to reuse later from the target screen.[/dim]\n\n",
                f"   Name:  {render_input(w.text_inputs.get(CONFIG_NAME_INPUT))}\n",
                hint(f"{ctx.keys.help('confirm')} save   {ctx.keys.help('back')} cancel"),
            ])

        data = w.data
        target = data.target.display_name if data.target else ""
        out = [section_title("Review Configuration"), "\n"]
        out.append(_row("Target", target))
        out.extend(target_rows(data))
        out.append("\n")
        out += [
            _row("GitHub User", data.github_user),
            _row("SSH Keys", f"{len(data.ssh_keys)} selected" if data.ssh_keys else ""),
            _row("Git Name", data.git_name),
            _row("Git Email", data.git_email),
            "\n",
            _row("Display Name", data.display_name),
            _row("Username", data.username),
            _row("Hostname", data.hostname),
            "\n",
            _row("Packages", f"{len(data.packages)} selected" if data.packages else ""),
            _row("Tailscale", _secret(data.tailscale_key)),
            _row("GitHub PAT", _secret(data.github_pat)),
            "\n [dim]" + "─" * 40 + "[/dim]\n\n",
        ]
        buttons = []
        for i, label in enumerate(BUTTONS):
            if i == w.focused_field:
                buttons.append(f"[bold]>[/bold] [reverse bold] {label} [/reverse bold]")
            else:
                buttons.append(f"  [dim]\\[{label}][/dim]")
        out.append(" " + "   ".join(buttons) + "\n")
        out.append(hint(
            f"{ctx.keys.help('left')}/{ctx.keys.help('right')} choose   {ctx.keys.help('confirm')} select   "
            f"{ctx.keys.help('back')} back"
        ))
        return "".join(out)
