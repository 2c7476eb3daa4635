"""Configuration management for CloudForge."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


class ConfigError(Exception):
    """Configuration error."""
    pass


@dataclass
class PathsConfig:
    project_dir: str = "."
    scripts_dir: str = ""       # defaults to <project_dir>/scripts
    settings_file: str = str(Path.home() / ".config" / "cloudforge" / "settings.yaml")

    @property
    def project_path(self) -> Path:
        return Path(self.project_dir).expanduser().resolve()

    @property
    def scripts_path(self) -> Path:
        if self.scripts_dir:
            return Path(self.scripts_dir).expanduser().resolve()
        return self.project_path / "scripts"

    @property
    def settings_path(self) -> Path:
        return Path(self.settings_file).expanduser()


@dataclass
class GitHubConfig:
    timeout: int = 10
    keys_url: str = "https://github.com"
    api_url: str = "https://api.github.com"


@dataclass
class DeployConfig:
    multipass_binary: str = "multipass"
    terraform_binary: str = "terraform"
    xorriso_binary: str = "xorriso"
    launch_timeout: int = 900       # seconds, passed to multipass launch
    cloud_init_timeout: int = 900   # seconds to wait for cloud-init status: done
    poll_interval: int = 5


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = str(Path.home() / ".config" / "cloudforge" / "cloudforge.log")


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    paths: PathsConfig = field(default_factory=PathsConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    deploy: DeployConfig = field(default_factory=DeployConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    keys: dict = field(default_factory=dict)   # action -> list of key names

    CONFIG_PATHS = [
        Path.home() / ".config" / "cloudforge" / "config.yaml",
        Path.home() / ".config" / "cloudforge" / "config.yml",
        Path("config") / "config.yaml",
        Path("config") / "config.yml",
    ]

    @classmethod
    def find_config_file(cls) -> Optional[Path]:
        """Find the first existing config file."""
        for path in cls.CONFIG_PATHS:
            if path.exists():
                return path
        return None

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        """Load configuration from YAML file.

        With no explicit path the search list is tried; when nothing is
        found the defaults are returned. An explicit path must exist.
        """
        if path is None:
            path = cls.find_config_file()
            if path is None:
                return cls()
        elif not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except Exception as e:
            raise ConfigError(f"Failed to read config file {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        config = cls()

        try:
            if isinstance(data.get("paths"), dict):
                p = data["paths"]
                config.paths = PathsConfig(
                    project_dir=str(p.get("project_dir", ".")),
                    scripts_dir=str(p.get("scripts_dir", "")),
                    settings_file=str(p.get("settings_file", config.paths.settings_file)),
                )

            if isinstance(data.get("github"), dict):
                gh = data["github"]
                config.github = GitHubConfig(
                    timeout=int(gh.get("timeout", 10)),
                    keys_url=str(gh.get("keys_url", "https://github.com")).rstrip("/"),
                    api_url=str(gh.get("api_url", "https://api.github.com")).rstrip("/"),
                )

            if isinstance(data.get("deploy"), dict):
                d = data["deploy"]
                config.deploy = DeployConfig(
                    multipass_binary=str(d.get("multipass_binary", "multipass")),
                    terraform_binary=str(d.get("terraform_binary", "terraform")),
                    xorriso_binary=str(d.get("xorriso_binary", "xorriso")),
                    launch_timeout=int(d.get("launch_timeout", 900)),
                    cloud_init_timeout=int(d.get("cloud_init_timeout", 900)),
                    poll_interval=int(d.get("poll_interval", 5)),
                )

            if isinstance(data.get("logging"), dict):
                lg = data["logging"]
                config.logging = LoggingConfig(
                    level=str(lg.get("level", "INFO")).upper(),
                    file=str(lg.get("file", config.logging.file)),
                )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value in config file {path}: {e}")

        if "keys" in data:
            keys = data["keys"]
            if not isinstance(keys, dict):
                raise ConfigError("'keys' must map action names to key lists")
            config.keys = {
                str(action): [str(k) for k in (v if isinstance(v, list) else [v])]
                for action, v in keys.items()
            }

        config.validate()
        return config

    def validate(self) -> None:
        """Validate that settings are usable."""
        if self.github.timeout <= 0:
            raise ConfigError("github.timeout must be a positive number of seconds")
        if self.deploy.poll_interval <= 0:
            raise ConfigError("deploy.poll_interval must be positive")
        if self.logging.level not in _LOG_LEVELS:
            raise ConfigError(
                f"logging.level must be one of {', '.join(_LOG_LEVELS)}"
            )
        from cloudforge.wizard.keys import KeyMap
        unknown = sorted(set(self.keys) - set(KeyMap.actions()))
        if unknown:
            raise ConfigError(f"Unknown key actions: {', '.join(unknown)}")
