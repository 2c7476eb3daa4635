"""Wizard phase handlers."""

from __future__ import annotations

from cloudforge.phases.complete import CompletePhase
from cloudforge.phases.deploy import DeployPhase
from cloudforge.phases.identity import GitPhase, HostPhase, OptionalPhase
from cloudforge.phases.packages import PackagesPhase
from cloudforge.phases.review import ReviewPhase
from cloudforge.phases.ssh import SSHPhase
from cloudforge.phases.target import TargetPhase
from cloudforge.phases.target_options import TargetOptionsPhase
from cloudforge.wizard.handler import PhaseHandler
from cloudforge.wizard.phase import Phase


def new_registry() -> dict[Phase, PhaseHandler]:
    """One fresh handler per phase."""
    return {
        Phase.TARGET: TargetPhase(),
        Phase.TARGET_OPTIONS: TargetOptionsPhase(),
        Phase.SSH: SSHPhase(),
        Phase.GIT: GitPhase(),
        Phase.HOST: HostPhase(),
        Phase.PACKAGES: PackagesPhase(),
        Phase.OPTIONAL: OptionalPhase(),
        Phase.REVIEW: ReviewPhase(),
        Phase.DEPLOY: DeployPhase(),
        Phase.COMPLETE: CompletePhase(),
    }
