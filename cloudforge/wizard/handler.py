"""Phase handler contract and the context handed to every phase."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Union

from cloudforge.config import DeployConfig
from cloudforge.github import GitHubClient
from cloudforge.settings import CloudImage, SettingsStore
from cloudforge.ssh_keys import find_local_keys
from cloudforge.wizard.keys import KeyMap
from cloudforge.wizard.phase import Phase
from cloudforge.wizard.state import WizardState

# Blocking callable run off the UI loop; its return value is fed back
# to the controller as a message (None means nothing to deliver).
Command = Callable[[], Any]
Cmd = Union[None, Command, list]

# field_count() value for phases that size themselves from live data
DYNAMIC_FIELDS = 0


def batch(*cmds: Cmd) -> Optional[list[Command]]:
    """Flatten commands, dropping Nones. Returns None when nothing is left."""
    out: list[Command] = []
    for c in cmds:
        if c is None:
            continue
        if isinstance(c, (list, tuple)):
            out.extend(batch(*c) or [])
        else:
            out.append(c)
    return out or None


@dataclass
class PhaseContext:
    wizard: WizardState
    keys: KeyMap = field(default_factory=KeyMap)
    project_dir: Path = field(default_factory=Path.cwd)
    store: Optional[SettingsStore] = None
    github: Optional[GitHubClient] = None
    cloud_images: list[CloudImage] = field(default_factory=list)
    message: str = ""
    deploy_config: DeployConfig = field(default_factory=DeployConfig)
    # (target, registry, deploy_config) -> Deployer
    deployer_factory: Optional[Callable[..., Any]] = None
    local_key_finder: Callable[[], list[str]] = find_local_keys
    jump_target: Optional[Phase] = None

    def jump_to(self, phase: Phase) -> None:
        """Ask the controller to move to ``phase`` once this update returns."""
        self.jump_target = phase


class PhaseHandler(ABC):
    """One wizard step: owns its fields, input handling and rendering."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def init(self, ctx: PhaseContext) -> Cmd:
        """Populate this phase's UI state and focus field 0."""

    @abstractmethod
    def update(self, ctx: PhaseContext, msg: Any) -> tuple[bool, Cmd]:
        """Handle one key press or message. Returns ``(advance, cmd)``."""

    @abstractmethod
    def view(self, ctx: PhaseContext) -> str:
        ...

    @abstractmethod
    def save(self, ctx: PhaseContext) -> None:
        """Write the phase's values into the wizard data before leaving."""

    @abstractmethod
    def field_count(self) -> int:
        ...

    def is_modal(self, ctx: PhaseContext) -> bool:
        """True while an overlay owns the escape key."""
        return False


class BasePhase(PhaseHandler):
    """Name and field count fixed at construction."""

    def __init__(self, name: str, field_count: int):
        self._name = name
        self._field_count = field_count

    @property
    def name(self) -> str:
        return self._name

    def field_count(self) -> int:
        return self._field_count

    def init(self, ctx: PhaseContext) -> Cmd:
        ctx.wizard.focused_field = 0
        return None

    def save(self, ctx: PhaseContext) -> None:
        pass
