"""Deployer selection and the commands that run a deployment in the background."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import Optional

from cloudforge.config import DeployConfig
from cloudforge.deploy.base import DeployOptions, Deployer, DeployResult
from cloudforge.deploy.config_only import ConfigOnlyDeployer
from cloudforge.deploy.multipass import MultipassDeployer
from cloudforge.deploy.progress import ProgressChannel
from cloudforge.deploy.terraform import TerraformDeployer
from cloudforge.deploy.usb import USBDeployer
from cloudforge.models import DeploymentTarget, FullConfig, WizardData, dedupe, disabled_packages
from cloudforge.packages import PackageRegistry
from cloudforge.wizard.handler import Command
from cloudforge.wizard.messages import DeployCompleteMessage, DeployProgressMessage, SpinnerTick

logger = logging.getLogger(__name__)

SPINNER_FRAMES = "⣾⣽⣻⢿⡿⣟⣯⣷"


def create_deployer(
    target: Optional[DeploymentTarget],
    registry: Optional[PackageRegistry] = None,
    settings: Optional[DeployConfig] = None,
) -> Deployer:
    """Pick the backend for ``target``; anything unrecognised generates config only."""
    if target == DeploymentTarget.MULTIPASS:
        return MultipassDeployer(settings)
    if target == DeploymentTarget.TERRAFORM:
        return TerraformDeployer(settings)
    if target == DeploymentTarget.USB:
        return USBDeployer(settings)
    return ConfigOnlyDeployer(registry)


def build_full_config(data: WizardData, registry: Optional[PackageRegistry]) -> FullConfig:
    all_names = registry.names() if registry is not None else []
    return FullConfig(
        username=data.username or "ubuntu",
        hostname=data.hostname or "ubuntu-server",
        ssh_public_keys=dedupe(data.ssh_keys),
        full_name=data.git_name,
        email=data.git_email,
        machine_name=data.display_name,
        enabled_packages=list(data.packages),
        disabled_packages=disabled_packages(all_names, data.packages),
        tailscale_auth_key=data.tailscale_key,
        docker_enabled="docker" in data.packages,
        github_user=data.github_user,
        github_pat=data.github_pat,
    )


def build_deploy_options(state, project_dir: Path) -> DeployOptions:
    """Shared config plus the option record matching the chosen target."""
    data, registry = state.data, state.registry
    target = data.target or DeploymentTarget.CONFIG_ONLY
    opts = DeployOptions(
        project_root=Path(project_dir),
        config=build_full_config(data, registry),
        target=target,
    )
    if target == DeploymentTarget.MULTIPASS:
        opts.multipass = replace(data.multipass)
    elif target == DeploymentTarget.TERRAFORM:
        opts.terraform = replace(data.terraform)
    elif target == DeploymentTarget.USB:
        opts.usb = replace(data.usb)
    else:
        opts.generate = replace(data.generate)
    return opts


def run_deployment(deployer: Deployer, opts: DeployOptions, channel: ProgressChannel) -> Command:
    """Command that runs the deployment to completion.

    Always yields a DeployCompleteMessage carrying a result, and always
    closes ``channel`` so the progress listener stops.
    """
    def _run() -> DeployCompleteMessage:
        start = time.monotonic()
        logger.info("Starting %s deployment", deployer.name)
        try:
            result = deployer.deploy(opts, channel.send)
            if result is None:
                result = DeployResult(
                    target=deployer.target, success=False,
                    error=RuntimeError(f"{deployer.name} returned no result"),
                )
        except Exception as e:
            logger.exception("%s deployment raised", deployer.name)
            result = DeployResult(target=deployer.target, success=False, error=e)

        if not result.duration:
            result.duration = time.monotonic() - start

        if not result.success:
            try:
                deployer.cleanup(opts)
            except Exception as e:
                logger.warning("Cleanup after failed %s deployment: %s", deployer.name, e)
                result.logs.append(f"Cleanup failed: {e}")
        else:
            logger.info("%s deployment finished in %.1fs", deployer.name, result.duration)

        channel.close()
        return DeployCompleteMessage(result)

    return _run


def wait_for_progress(channel: ProgressChannel) -> Command:
    """Command that blocks for the next progress event; None once closed."""
    def _wait() -> Optional[DeployProgressMessage]:
        event = channel.receive()
        if event is None:
            return None
        return DeployProgressMessage(event)

    return _wait


def spinner_tick(interval: float = 0.1) -> Command:
    def _tick() -> SpinnerTick:
        time.sleep(interval)
        return SpinnerTick()

    return _tick
