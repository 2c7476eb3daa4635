"""Deployer contract, options and result types."""

from __future__ import annotations

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from cloudforge.deploy.progress import ProgressCallback
from cloudforge.models import (
    DeploymentTarget,
    FullConfig,
    GenerateOptions,
    MultipassOptions,
    TerraformOptions,
    USBOptions,
)

logger = logging.getLogger(__name__)


class DeployError(Exception):
    """Deployment could not be validated or completed."""
    pass


@dataclass
class DeployOptions:
    project_root: Path
    config: FullConfig
    target: DeploymentTarget
    multipass: MultipassOptions = field(default_factory=MultipassOptions)
    terraform: TerraformOptions = field(default_factory=TerraformOptions)
    usb: USBOptions = field(default_factory=USBOptions)
    generate: GenerateOptions = field(default_factory=GenerateOptions)


@dataclass
class DeployResult:
    target: Optional[DeploymentTarget] = None
    success: bool = False
    error: Optional[BaseException] = None
    outputs: dict[str, str] = field(default_factory=dict)
    logs: list[str] = field(default_factory=list)
    duration: float = 0.0       # seconds

    @property
    def error_message(self) -> str:
        return str(self.error) if self.error is not None else ""


class CommandRunner:
    """Run external commands, returning ``(ok, output)`` instead of raising."""

    def __init__(self, timeout: int = 300):
        self.timeout = timeout

    def available(self, binary: str) -> bool:
        return shutil.which(binary) is not None

    def run(
        self,
        cmd: Sequence[str],
        cwd: Optional[Path] = None,
        timeout: Optional[int] = None,
    ) -> tuple[bool, str]:
        timeout = timeout or self.timeout
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                list(cmd),
                cwd=str(cwd) if cwd else None,
                capture_output=True, text=True, timeout=timeout,
            )
            output = result.stdout + result.stderr
            return result.returncode == 0, output
        except subprocess.TimeoutExpired:
            return False, f"{cmd[0]} timed out after {timeout}s"
        except FileNotFoundError:
            return False, f"{cmd[0]} not found in PATH"
        except OSError as e:
            return False, str(e)


def format_command(cmd: Sequence[str]) -> str:
    return " ".join(cmd)


class Deployer(ABC):
    """A backend that turns reviewed wizard data into a VM or files."""

    name: str = ""
    target: DeploymentTarget = DeploymentTarget.CONFIG_ONLY

    @abstractmethod
    def validate(self, opts: DeployOptions) -> None:
        """Raise DeployError if the deployment cannot start."""

    @abstractmethod
    def deploy(self, opts: DeployOptions, progress: ProgressCallback) -> DeployResult:
        """Run the deployment, reporting milestones through ``progress``.

        Runtime failures are reported as a failed result carrying
        whatever outputs and logs were collected.
        """

    def cleanup(self, opts: DeployOptions) -> None:
        """Roll back partial work after a failed deployment."""
