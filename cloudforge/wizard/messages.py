"""Messages delivered to the wizard controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cloudforge.deploy.base import DeployResult
from cloudforge.deploy.progress import ProgressEvent
from cloudforge.github import GitHubData


@dataclass(frozen=True)
class KeyPress:
    key: str
    character: Optional[str] = None


@dataclass(frozen=True)
class GitHubDataMessage:
    user: str
    data: GitHubData


@dataclass(frozen=True)
class DeployProgressMessage:
    event: ProgressEvent


@dataclass(frozen=True)
class DeployCompleteMessage:
    result: DeployResult


@dataclass(frozen=True)
class SpinnerTick:
    pass
