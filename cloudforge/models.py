"""Data models for CloudForge."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class DeploymentTarget(Enum):
    TERRAFORM = "terraform"
    MULTIPASS = "multipass"
    USB = "usb"
    CONFIG_ONLY = "config"

    @classmethod
    def from_str(cls, s: str) -> Optional["DeploymentTarget"]:
        try:
            return cls(s.lower())
        except (ValueError, AttributeError):
            return None

    @property
    def display_name(self) -> str:
        return {
            DeploymentTarget.TERRAFORM: "Terraform/libvirt",
            DeploymentTarget.MULTIPASS: "Multipass",
            DeploymentTarget.USB: "Bootable USB (ISO)",
            DeploymentTarget.CONFIG_ONLY: "Generate Config Only",
        }[self]


@dataclass
class MultipassOptions:
    vm_name: str = ""
    ubuntu_version: str = "24.04"
    cpus: int = 2
    memory_mb: int = 4096
    disk_gb: int = 20
    keep_on_failure: bool = False


@dataclass
class TerraformOptions:
    vm_name: str = ""
    cpus: int = 2
    memory_mb: int = 4096
    disk_gb: int = 20
    ubuntu_image: str = ""
    libvirt_uri: str = "qemu:///system"
    storage_pool: str = "default"
    network: str = "default"
    autostart: bool = False
    keep_on_failure: bool = False


@dataclass
class USBOptions:
    source_iso: str = ""
    output_path: str = ""
    storage_layout: str = "lvm"    # lvm, direct, zfs
    timezone: str = "UTC"
    ubuntu_version: str = "24.04"


@dataclass
class GenerateOptions:
    output_dir: str = "."
    generate_cloud_init: bool = True


@dataclass
class WizardData:
    """Everything the user decided across the wizard phases.

    Only the option bundle matching ``target`` is meaningful.
    """
    target: Optional[DeploymentTarget] = None

    multipass: MultipassOptions = field(default_factory=MultipassOptions)
    terraform: TerraformOptions = field(default_factory=TerraformOptions)
    usb: USBOptions = field(default_factory=USBOptions)
    generate: GenerateOptions = field(default_factory=GenerateOptions)

    # SSH
    ssh_keys: list[str] = field(default_factory=list)         # selected, deduplicated
    github_user: str = ""
    local_ssh_keys: list[str] = field(default_factory=list)
    github_ssh_keys: list[str] = field(default_factory=list)

    # Git
    git_name: str = ""
    git_email: str = ""
    github_id: int = 0

    # Host
    display_name: str = ""
    username: str = ""
    hostname: str = ""

    packages: list[str] = field(default_factory=list)

    # Optional services
    tailscale_key: str = ""
    github_pat: str = ""


@dataclass
class FullConfig:
    """Everything needed to render config.env, secrets.env and cloud-init."""
    username: str = "ubuntu"
    hostname: str = "ubuntu-server"
    ssh_public_keys: list[str] = field(default_factory=list)
    full_name: str = ""
    email: str = ""
    machine_name: str = ""

    enabled_packages: list[str] = field(default_factory=list)
    disabled_packages: list[str] = field(default_factory=list)

    git_default_branch: str = "main"
    git_push_auto_setup_remote: bool = True
    git_pull_rebase: bool = True
    git_pager: str = "delta"
    git_url_rewrite_github: bool = True

    tailscale_auth_key: str = ""
    tailscale_ssh_enabled: bool = True
    tailscale_exit_node: bool = True

    docker_enabled: bool = False
    docker_add_to_group: bool = True
    docker_start_on_boot: bool = True

    github_user: str = ""
    github_pat: str = ""

    repo_url: str = ""
    repo_branch: str = "main"

    @property
    def machine_user_name(self) -> str:
        return self.machine_name or self.full_name

    @property
    def tailscale_enabled(self) -> bool:
        return bool(self.tailscale_auth_key)


def disabled_packages(all_packages: list[str], enabled: list[str]) -> list[str]:
    """Return packages in ``all_packages`` that are not enabled, keeping order."""
    enabled_set = set(enabled)
    return [p for p in all_packages if p not in enabled_set]


def dedupe(items: list[str]) -> list[str]:
    """Drop repeated entries while keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            out.append(item)
    return out
