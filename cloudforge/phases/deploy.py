"""Runs the deployment in the background and shows its progress."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from rich.markup import escape

from cloudforge.deploy.base import Deployer, DeployResult
from cloudforge.deploy.dispatcher import (
    SPINNER_FRAMES,
    build_deploy_options,
    create_deployer,
    run_deployment,
    spinner_tick,
    wait_for_progress,
)
from cloudforge.deploy.progress import ProgressChannel, ProgressEvent, clamp_percent
from cloudforge.wizard.fields import hint, section_title
from cloudforge.wizard.handler import BasePhase, Cmd, PhaseContext, batch
from cloudforge.wizard.messages import (
    DeployCompleteMessage,
    DeployProgressMessage,
    KeyPress,
    SpinnerTick,
)

logger = logging.getLogger(__name__)

BAR_WIDTH = 40
LOG_LINES = 12


@dataclass
class DeployState:
    """Deploy/Complete phase bookkeeping kept on ``WizardState.deploy_state``."""
    deployer_name: str
    channel: ProgressChannel
    started_at: float = field(default_factory=time.monotonic)
    events: list[ProgressEvent] = field(default_factory=list)
    percent: int = 0
    frame: int = 0
    result: Optional[DeployResult] = None

    @property
    def done(self) -> bool:
        return self.result is not None

    @property
    def last_event(self) -> Optional[ProgressEvent]:
        return self.events[-1] if self.events else None


def progress_bar(percent: int, width: int = BAR_WIDTH) -> str:
    percent = clamp_percent(percent)
    filled = percent * width // 100
    return f"[green]{'█' * filled}[/green][dim]{'░' * (width - filled)}[/dim] {percent:3d}%"


class DeployPhase(BasePhase):
    def __init__(self):
        super().__init__("Deploying", 0)

    def _deployer(self, ctx: PhaseContext) -> Deployer:
        w = ctx.wizard
        factory = ctx.deployer_factory or create_deployer
        return factory(w.data.target, w.registry, ctx.deploy_config)

    def init(self, ctx: PhaseContext) -> Cmd:
        w = ctx.wizard
        w.focused_field = 0
        deployer = self._deployer(ctx)
        opts = build_deploy_options(w, ctx.project_dir)
        channel = ProgressChannel()
        w.deploy_state = DeployState(deployer_name=deployer.name, channel=channel)
        w.deploying = True
        ctx.message = ""
        logger.info("Deploying %s via %s", opts.config.hostname, deployer.name)
        return batch(
            spinner_tick(),
            run_deployment(deployer, opts, channel),
            wait_for_progress(channel),
        )

    def update(self, ctx: PhaseContext, msg: Any) -> tuple[bool, Cmd]:
        w = ctx.wizard
        state: Optional[DeployState] = w.deploy_state
        if state is None:
            return False, None

        if isinstance(msg, DeployProgressMessage):
            state.events.append(msg.event)
            if msg.event.percent >= 0:
                state.percent = clamp_percent(msg.event.percent)
            return False, wait_for_progress(state.channel)

        if isinstance(msg, SpinnerTick):
            if state.done:
                return False, None
            state.frame += 1
            return False, spinner_tick()

        if isinstance(msg, DeployCompleteMessage):
            state.result = msg.result
            w.deploying = False
            if msg.result.success:
                state.percent = 100
            return False, None

        if isinstance(msg, KeyPress) and state.done and ctx.keys.matches(msg.key, "confirm"):
            return True, None
        return False, None

    def view(self, ctx: PhaseContext) -> str:
        state: Optional[DeployState] = ctx.wizard.deploy_state
        if state is None:
            return section_title("Deploying")
        out = [section_title(f"Deploying with {state.deployer_name}"), "\n"]

        if state.done:
            status = "[bold green]✓ Finished[/bold green]" if state.result.success \
                else "[bold red]✗ Failed[/bold red]"
        else:
            frame = SPINNER_FRAMES[state.frame % len(SPINNER_FRAMES)]
            last = state.last_event
            stage = last.stage.display_name if last else "Starting"
            status = f"[cyan]{frame}[/cyan] {escape(stage)}"
        out.append(f" {status}\n\n")
        out.append(f" {progress_bar(state.percent)}\n\n")

        for event in state.events[-LOG_LINES:]:
            if event.is_error:
                out.append(f" [red]✗ {escape(event.message)}[/red]\n")
            else:
                out.append(f" [green]✓[/green] {escape(event.message)}\n")
            if event.command:
                out.append(f"     [dim]$ {escape(event.command)}[/dim]\n")
            if event.detail:
                out.append(f"     [dim]{escape(event.detail)}[/dim]\n")

        if state.done:
            out.append(hint(f"{ctx.keys.help('confirm')} view results"))
        else:
            elapsed = time.monotonic() - state.started_at
            out.append(hint(f"Elapsed {elapsed:.0f}s"))
        return "".join(out)
