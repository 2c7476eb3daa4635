"""Wizard phases and their fixed ordering."""

from __future__ import annotations

from enum import IntEnum


class Phase(IntEnum):
    TARGET = 0
    TARGET_OPTIONS = 1
    SSH = 2
    GIT = 3
    HOST = 4
    PACKAGES = 5
    OPTIONAL = 6
    REVIEW = 7
    DEPLOY = 8
    COMPLETE = 9

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def is_config_phase(self) -> bool:
        """True for the phases that collect guest configuration."""
        return Phase.SSH <= self <= Phase.OPTIONAL


_DISPLAY_NAMES = {
    Phase.TARGET: "Select Target",
    Phase.TARGET_OPTIONS: "Target Options",
    Phase.SSH: "SSH Keys",
    Phase.GIT: "Git Config",
    Phase.HOST: "Host Details",
    Phase.PACKAGES: "Packages",
    Phase.OPTIONAL: "Optional Services",
    Phase.REVIEW: "Review",
    Phase.DEPLOY: "Deploying",
    Phase.COMPLETE: "Complete",
}

NEXT = {
    Phase.TARGET: Phase.TARGET_OPTIONS,
    Phase.TARGET_OPTIONS: Phase.SSH,
    Phase.SSH: Phase.GIT,
    Phase.GIT: Phase.HOST,
    Phase.HOST: Phase.PACKAGES,
    Phase.PACKAGES: Phase.OPTIONAL,
    Phase.OPTIONAL: Phase.REVIEW,
    Phase.REVIEW: Phase.DEPLOY,
    Phase.DEPLOY: Phase.COMPLETE,
    Phase.COMPLETE: Phase.COMPLETE,
}

# Walls map to themselves
PREV = {
    Phase.TARGET: Phase.TARGET,
    Phase.TARGET_OPTIONS: Phase.TARGET,
    Phase.SSH: Phase.TARGET_OPTIONS,
    Phase.GIT: Phase.SSH,
    Phase.HOST: Phase.GIT,
    Phase.PACKAGES: Phase.HOST,
    Phase.OPTIONAL: Phase.PACKAGES,
    Phase.REVIEW: Phase.OPTIONAL,
    Phase.DEPLOY: Phase.DEPLOY,
    Phase.COMPLETE: Phase.COMPLETE,
}

NO_BACK = frozenset({Phase.TARGET, Phase.DEPLOY, Phase.COMPLETE})


def total_phases() -> int:
    return len(Phase)
