"""Deployment outcome and next steps."""

from __future__ import annotations

from typing import Any

from rich.markup import escape

from cloudforge.deploy.base import DeployResult
from cloudforge.models import DeploymentTarget
from cloudforge.wizard.fields import hint, section_title
from cloudforge.wizard.handler import BasePhase, Cmd, PhaseContext
from cloudforge.wizard.messages import KeyPress
from cloudforge.wizard.phase import Phase

LOG_TAIL = 15


def next_steps(result: DeployResult) -> list[str]:
    out = result.outputs
    target = result.target
    if target == DeploymentTarget.MULTIPASS:
        steps = [f"multipass shell {out.get('vm_name', '')}".strip()]
        if out.get("ssh_command"):
            steps.append(out["ssh_command"])
        return steps
    if target == DeploymentTarget.TERRAFORM:
        steps = []
        if out.get("ssh_command"):
            steps.append(out["ssh_command"])
        if out.get("console_command"):
            steps.append(out["console_command"])
        return steps
    if target == DeploymentTarget.USB:
        iso = out.get("iso_path", "<iso>")
        return [
            f"sudo dd if={iso} of=/dev/sdX bs=4M status=progress conv=fsync",
            "Boot the target machine from the USB drive; installation runs unattended",
        ]
    steps = []
    if out.get("config.env"):
        steps.append(f"Review {out['config.env']}")
    if out.get("cloud-init.yaml"):
        steps.append(f"Pass {out['cloud-init.yaml']} as user-data to your provisioner")
    return steps


class CompletePhase(BasePhase):
    def __init__(self):
        super().__init__("Complete", 0)

    def update(self, ctx: PhaseContext, msg: Any) -> tuple[bool, Cmd]:
        if isinstance(msg, KeyPress) and ctx.keys.matches(msg.key, "restart"):
            ctx.wizard.reset()
            ctx.message = ""
            ctx.jump_to(Phase.TARGET)
        return False, None

    def view(self, ctx: PhaseContext) -> str:
        state = ctx.wizard.deploy_state
        result = getattr(state, "result", None)
        restart = hint(f"{ctx.keys.help('restart')} create another")
        if result is None:
            return section_title("Complete") + "\n [dim]No deployment was run.[/dim]\n" + restart

        if not result.success:
            out = [
                section_title("Deployment Failed"),
                f"\n [bold red]✗ {escape(result.error_message)}[/bold red]\n",
                f" [dim]after {result.duration:.1f}s[/dim]\n",
            ]
            if result.logs:
                out.append("\n [bold]Logs[/bold]\n")
                lines = "\n".join(result.logs).splitlines()[-LOG_TAIL:]
                out.extend(f"   [dim]{escape(line)}[/dim]\n" for line in lines)
            out.append(restart)
            return "".join(out)

        out = [
            section_title("Deployment Complete"),
            f"\n [bold green]✓ Finished in {result.duration:.1f}s[/bold green]\n",
        ]
        if result.outputs:
            out.append("\n [bold]Outputs[/bold]\n")
            width = max(len(k) for k in result.outputs)
            for key, value in result.outputs.items():
                out.append(f"   {escape(key):<{width}}  [green]{escape(str(value))}[/green]\n")
        steps = next_steps(result)
        if steps:
            out.append("\n [bold]Next steps[/bold]\n")
            out.extend(f"   [cyan]{escape(step)}[/cyan]\n" for step in steps)
        out.append(restart)
        return "".join(out)
