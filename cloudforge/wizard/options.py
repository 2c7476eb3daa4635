"""Choice tables for the target option forms."""

from __future__ import annotations

from cloudforge.models import DeploymentTarget

# Display order of the target picker
TARGETS = [
    (DeploymentTarget.TERRAFORM, "Create a libvirt VM with Terraform"),
    (DeploymentTarget.MULTIPASS, "Launch a local Multipass VM"),
    (DeploymentTarget.USB, "Build an autoinstall ISO for bare metal"),
    (DeploymentTarget.CONFIG_ONLY, "Write config.env, secrets.env and cloud-init.yaml"),
]


def target_index(target) -> int:
    for i, (t, _) in enumerate(TARGETS):
        if t == target:
            return i
    return 0

# (label, multipass image)
UBUNTU_IMAGES = [
    ("24.04 LTS (Noble Numbat)", "24.04"),
    ("22.04 LTS (Jammy Jellyfish)", "22.04"),
    ("25.04 (Plucky Puffin)", "25.04"),
    ("daily:26.04 (Resolute)", "daily:26.04"),
]
DEFAULT_IMAGE_IDX = 0

CPU_OPTIONS = [1, 2, 4]
DEFAULT_CPU_IDX = 1

MEMORY_OPTIONS = [2048, 4096, 8192]    # MB
DEFAULT_MEMORY_IDX = 1

DISK_OPTIONS = [10, 20, 40]            # GB
DEFAULT_DISK_IDX = 1

# (label, autoinstall layout name)
STORAGE_LAYOUTS = [
    ("LVM", "lvm"),
    ("Direct", "direct"),
    ("ZFS", "zfs"),
]
DEFAULT_STORAGE_IDX = 0


def image_labels() -> list[str]:
    return [label for label, _ in UBUNTU_IMAGES]


def cpu_labels() -> list[str]:
    return [f"{n} CPU" if n == 1 else f"{n} CPUs" for n in CPU_OPTIONS]


def memory_labels() -> list[str]:
    return [f"{mb // 1024} GB" for mb in MEMORY_OPTIONS]


def disk_labels() -> list[str]:
    return [f"{gb} GB" for gb in DISK_OPTIONS]


def storage_labels() -> list[str]:
    return [label for label, _ in STORAGE_LAYOUTS]


def index_of(options: list, value, default: int) -> int:
    """Position of ``value`` in ``options``, or ``default``."""
    try:
        return options.index(value)
    except ValueError:
        return default


def pick(options: list, idx: int, default: int):
    if 0 <= idx < len(options):
        return options[idx]
    return options[default]
