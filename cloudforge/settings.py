"""Persistent settings: saved VM profiles, package presets and cloud images."""

from __future__ import annotations

import logging
import os
import re
import tempfile
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

from cloudforge.models import (
    DeploymentTarget,
    GenerateOptions,
    MultipassOptions,
    TerraformOptions,
    USBOptions,
)

logger = logging.getLogger(__name__)

SETTINGS_VERSION = "1.1"
SETTINGS_PATH = Path.home() / ".config" / "cloudforge" / "settings.yaml"

MAX_VM_CONFIGS = 100
MAX_PACKAGE_PRESETS = 50
MAX_CONFIG_NAME_LENGTH = 50

_CONFIG_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9\-_\s]*$")
_MULTI_SPACE_RE = re.compile(r"\s+")


class SettingsError(Exception):
    """Settings file could not be read or written."""
    pass


@dataclass
class CloudImage:
    id: str
    name: str = ""
    version: str = ""
    arch: str = "amd64"
    path: str = ""
    url: str = ""
    sha256: str = ""
    size: int = 0
    added_at: str = ""
    verified: bool = False


@dataclass
class WizardDataSnapshot:
    """Serializable subset of WizardData.

    At most one of the ``*_opts`` records is set, matching the profile target.
    """
    username: str = ""
    hostname: str = ""
    display_name: str = ""
    git_name: str = ""
    git_email: str = ""
    github_user: str = ""
    ssh_keys: list[str] = field(default_factory=list)
    packages: list[str] = field(default_factory=list)
    multipass_opts: Optional[MultipassOptions] = None
    terraform_opts: Optional[TerraformOptions] = None
    usb_opts: Optional[USBOptions] = None
    generate_opts: Optional[GenerateOptions] = None


@dataclass
class VMConfig:
    id: str
    name: str
    description: str = ""
    target: str = DeploymentTarget.TERRAFORM.value
    created_at: datetime = field(default_factory=datetime.now)
    last_used_at: Optional[datetime] = None
    data: WizardDataSnapshot = field(default_factory=WizardDataSnapshot)


@dataclass
class PackagePreset:
    id: str
    name: str
    description: str = ""
    packages: list[str] = field(default_factory=list)
    is_builtin: bool = False
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class Settings:
    version: str = SETTINGS_VERSION
    images_dir: str = ""
    cloud_images: list[CloudImage] = field(default_factory=list)
    vm_configs: list[VMConfig] = field(default_factory=list)
    package_presets: list[PackagePreset] = field(default_factory=list)

    # -- cloud images ---------------------------------------------------

    def find_cloud_image(self, image_id: str) -> Optional[CloudImage]:
        for img in self.cloud_images:
            if img.id == image_id:
                return img
        return None

    def add_cloud_image(self, image: CloudImage) -> None:
        self.cloud_images = [i for i in self.cloud_images if i.id != image.id]
        self.cloud_images.append(image)

    # -- VM profiles ----------------------------------------------------

    def find_vm_config(self, config_id: str) -> Optional[VMConfig]:
        for cfg in self.vm_configs:
            if cfg.id == config_id:
                return cfg
        return None

    def add_vm_config(self, cfg: VMConfig) -> None:
        self.vm_configs = [c for c in self.vm_configs if c.id != cfg.id]
        self.vm_configs.append(cfg)

    def remove_vm_config(self, config_id: str) -> bool:
        before = len(self.vm_configs)
        self.vm_configs = [c for c in self.vm_configs if c.id != config_id]
        return len(self.vm_configs) != before

    def update_vm_config_last_used(self, config_id: str) -> bool:
        cfg = self.find_vm_config(config_id)
        if cfg is None:
            return False
        cfg.last_used_at = datetime.now()
        return True

    # -- presets --------------------------------------------------------

    def add_package_preset(self, preset: PackagePreset) -> None:
        self.package_presets = [p for p in self.package_presets if p.id != preset.id]
        self.package_presets.append(preset)

    def remove_package_preset(self, preset_id: str) -> bool:
        """Remove a user preset. Built-in presets cannot be removed."""
        for p in self.package_presets:
            if p.id == preset_id:
                if p.is_builtin:
                    return False
                self.package_presets.remove(p)
                return True
        return False

    def enforce_limits(self) -> None:
        if len(self.vm_configs) > MAX_VM_CONFIGS:
            self.vm_configs.sort(
                key=lambda c: c.last_used_at or c.created_at, reverse=True,
            )
            self.vm_configs = self.vm_configs[:MAX_VM_CONFIGS]

        if len(self.package_presets) > MAX_PACKAGE_PRESETS:
            builtin = [p for p in self.package_presets if p.is_builtin]
            user = [p for p in self.package_presets if not p.is_builtin]
            room = max(0, MAX_PACKAGE_PRESETS - len(builtin))
            user.sort(key=lambda p: p.created_at, reverse=True)
            self.package_presets = builtin + user[:room]


def default_package_presets() -> list[PackagePreset]:
    """Presets shipped with CloudForge."""
    epoch = datetime(2024, 1, 1)
    return [
        PackagePreset(
            id="builtin-minimal", name="Minimal",
            description="Build tools and fast search only",
            packages=["make", "ripgrep"], is_builtin=True, created_at=epoch,
        ),
        PackagePreset(
            id="builtin-developer", name="Developer",
            description="Everyday CLI tooling for development boxes",
            packages=["bat", "btop", "make", "ripgrep", "yq"],
            is_builtin=True, created_at=epoch,
        ),
        PackagePreset(
            id="builtin-monitoring", name="Monitoring",
            description="System monitors",
            packages=["btop", "glances"], is_builtin=True, created_at=epoch,
        ),
        PackagePreset(
            id="builtin-full", name="Full",
            description="Every shipped installer",
            packages=["bat", "btop", "glances", "make", "ripgrep", "tailscale", "yq"],
            is_builtin=True, created_at=epoch,
        ),
    ]


def is_valid_target(target: str) -> bool:
    return DeploymentTarget.from_str(target) is not None


def validate_config_name(name: str) -> None:
    """Raise ValueError if ``name`` cannot be used as a profile name."""
    name = name.strip()
    if not name:
        raise ValueError("config name cannot be empty")
    if len(name) > MAX_CONFIG_NAME_LENGTH:
        raise ValueError(f"config name cannot exceed {MAX_CONFIG_NAME_LENGTH} characters")
    if ".." in name or "/" in name or "\\" in name:
        raise ValueError("config name contains invalid characters")
    if not _CONFIG_NAME_RE.match(name):
        raise ValueError(
            "config name can only contain letters, numbers, hyphens, underscores, and spaces"
        )


def sanitize_config_name(name: str) -> str:
    """Best-effort cleanup of a user-typed profile name."""
    name = name.strip()
    for bad in ("..", "/", "\\"):
        name = name.replace(bad, "")
    name = _MULTI_SPACE_RE.sub(" ", name)
    name = name.lstrip("".join(c for c in name if not c.isascii() or not c.isalnum()))
    name = "".join(c for c in name if (c.isascii() and c.isalnum()) or c in "-_ ")
    return name[:MAX_CONFIG_NAME_LENGTH]


# ----------------------------------------------------------------------
# Serialization
# ----------------------------------------------------------------------

def _dt(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def _opts(cls, data: Any):
    if not isinstance(data, dict):
        return None
    valid = set(cls.__dataclass_fields__.keys())
    return cls(**{k: v for k, v in data.items() if k in valid})


def _snapshot_from_dict(data: dict[str, Any]) -> WizardDataSnapshot:
    return WizardDataSnapshot(
        username=str(data.get("username", "")),
        hostname=str(data.get("hostname", "")),
        display_name=str(data.get("display_name", "")),
        git_name=str(data.get("git_name", "")),
        git_email=str(data.get("git_email", "")),
        github_user=str(data.get("github_user", "")),
        ssh_keys=[str(k) for k in data.get("ssh_keys") or []],
        packages=[str(p) for p in data.get("packages") or []],
        multipass_opts=_opts(MultipassOptions, data.get("multipass_opts")),
        terraform_opts=_opts(TerraformOptions, data.get("terraform_opts")),
        usb_opts=_opts(USBOptions, data.get("usb_opts")),
        generate_opts=_opts(GenerateOptions, data.get("generate_opts")),
    )


def _from_dict(data: dict[str, Any]) -> Settings:
    settings = Settings(
        version=str(data.get("version", SETTINGS_VERSION)),
        images_dir=str(data.get("images_dir", "")),
    )
    for img in data.get("cloud_images") or []:
        if isinstance(img, dict) and img.get("id"):
            settings.cloud_images.append(_opts(CloudImage, img))
    for cfg in data.get("vm_configs") or []:
        if not isinstance(cfg, dict) or not cfg.get("id"):
            continue
        settings.vm_configs.append(VMConfig(
            id=str(cfg["id"]),
            name=str(cfg.get("name", "")),
            description=str(cfg.get("description", "")),
            target=str(cfg.get("target", DeploymentTarget.TERRAFORM.value)),
            created_at=_dt(cfg.get("created_at")) or datetime.now(),
            last_used_at=_dt(cfg.get("last_used_at")),
            data=_snapshot_from_dict(cfg.get("data") or {}),
        ))
    for preset in data.get("package_presets") or []:
        if not isinstance(preset, dict) or not preset.get("id"):
            continue
        settings.package_presets.append(PackagePreset(
            id=str(preset["id"]),
            name=str(preset.get("name", "")),
            description=str(preset.get("description", "")),
            packages=[str(p) for p in preset.get("packages") or []],
            is_builtin=bool(preset.get("is_builtin", False)),
            created_at=_dt(preset.get("created_at")) or datetime.now(),
        ))
    return settings


def _to_dict(settings: Settings) -> dict[str, Any]:
    data = asdict(settings)
    for cfg in data["vm_configs"]:
        cfg["created_at"] = cfg["created_at"].isoformat()
        cfg["last_used_at"] = cfg["last_used_at"].isoformat() if cfg["last_used_at"] else None
        cfg["data"] = {k: v for k, v in cfg["data"].items() if v is not None}
    for preset in data["package_presets"]:
        preset["created_at"] = preset["created_at"].isoformat()
    return data


class SettingsStore:
    """YAML-backed settings file with atomic writes."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else SETTINGS_PATH
        self._lock = threading.Lock()

    def load(self) -> Settings:
        with self._lock:
            return self._load()

    def save(self, settings: Settings) -> None:
        with self._lock:
            self._save(settings)

    def load_and_save(self, modify: Callable[[Settings], None]) -> Settings:
        """Load, apply ``modify`` and write back under one lock."""
        with self._lock:
            settings = self._load()
            modify(settings)
            self._save(settings)
            return settings

    def _load(self) -> Settings:
        if not self.path.exists():
            return Settings()
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise SettingsError(f"Could not read settings file {self.path}: {e}")
        if not isinstance(data, dict):
            raise SettingsError(f"Settings file {self.path} is not a mapping")
        settings = _from_dict(data)
        if settings.version != SETTINGS_VERSION:
            logger.info("Migrating settings from %s to %s", settings.version, SETTINGS_VERSION)
            settings.version = SETTINGS_VERSION
        return settings

    def _save(self, settings: Settings) -> None:
        settings.enforce_limits()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    yaml.safe_dump(_to_dict(settings), f, default_flow_style=False, sort_keys=False)
                os.chmod(tmp, 0o600)
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise SettingsError(f"Could not write settings file {self.path}: {e}")
