"""Conversion between live wizard data and saved VM profiles."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime

from cloudforge.models import DeploymentTarget, WizardData
from cloudforge.settings import PackagePreset, VMConfig, WizardDataSnapshot
from cloudforge.wizard.options import target_index
from cloudforge.wizard.state import WizardState


def to_snapshot(data: WizardData) -> WizardDataSnapshot:
    snap = WizardDataSnapshot(
        username=data.username,
        hostname=data.hostname,
        display_name=data.display_name,
        git_name=data.git_name,
        git_email=data.git_email,
        github_user=data.github_user,
        ssh_keys=list(data.ssh_keys),
        packages=list(data.packages),
    )
    if data.target == DeploymentTarget.MULTIPASS:
        snap.multipass_opts = replace(data.multipass)
    elif data.target == DeploymentTarget.TERRAFORM:
        snap.terraform_opts = replace(data.terraform)
    elif data.target == DeploymentTarget.USB:
        snap.usb_opts = replace(data.usb)
    elif data.target == DeploymentTarget.CONFIG_ONLY:
        snap.generate_opts = replace(data.generate)
    return snap


def from_snapshot(snap: WizardDataSnapshot, target: DeploymentTarget, data: WizardData) -> None:
    data.username = snap.username
    data.hostname = snap.hostname
    data.display_name = snap.display_name
    data.git_name = snap.git_name
    data.git_email = snap.git_email
    data.github_user = snap.github_user
    data.ssh_keys = list(snap.ssh_keys)
    data.packages = list(snap.packages)
    data.target = target
    if snap.multipass_opts is not None:
        data.multipass = replace(snap.multipass_opts)
    if snap.terraform_opts is not None:
        data.terraform = replace(snap.terraform_opts)
    if snap.usb_opts is not None:
        data.usb = replace(snap.usb_opts)
    if snap.generate_opts is not None:
        data.generate = replace(snap.generate_opts)


def to_vm_config(data: WizardData, name: str, description: str = "") -> VMConfig:
    now = datetime.now()
    target = data.target or DeploymentTarget.TERRAFORM
    return VMConfig(
        id=str(uuid.uuid4()),
        name=name,
        description=description,
        target=target.value,
        created_at=now,
        last_used_at=now,
        data=to_snapshot(data),
    )


def load_from_config(cfg: VMConfig, state: WizardState) -> None:
    """Populate ``state`` from a saved profile.

    Unknown targets load as Terraform/libvirt.
    """
    target = DeploymentTarget.from_str(cfg.target) or DeploymentTarget.TERRAFORM
    from_snapshot(cfg.data, target, state.data)
    state.target_selected = target_index(target)

    state.package_selected = {pkg: True for pkg in cfg.data.packages}
    state.ssh_key_selected = {key: True for key in cfg.data.ssh_keys}


@dataclass
class PresetApplyResult:
    applied: int = 0
    skipped: int = 0
    invalid: list[str] = field(default_factory=list)


def apply_package_preset(preset: PackagePreset, state: WizardState) -> PresetApplyResult:
    """Replace the package selection with the preset's packages.

    Packages missing from the registry are skipped and reported. With no
    registry every preset package is applied.
    """
    result = PresetApplyResult()
    for name in state.package_selected:
        state.package_selected[name] = False

    registry = state.registry
    for name in preset.packages:
        if registry is None or registry.get(name) is not None:
            state.package_selected[name] = True
            result.applied += 1
        else:
            result.skipped += 1
            result.invalid.append(name)
    return result


def preset_message(preset: PackagePreset, result: PresetApplyResult) -> str:
    if result.skipped:
        total = result.applied + result.skipped
        return (
            f"Applied preset: {preset.name} "
            f"({result.applied}/{total} packages, {result.skipped} not found)"
        )
    return f"Applied preset: {preset.name} ({result.applied} packages)"
