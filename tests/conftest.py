"""Shared fixtures for the CloudForge tests."""

from pathlib import Path

import pytest

from cloudforge.packages import Package, PackageRegistry, categorize
from cloudforge.settings import SettingsStore
from cloudforge.wizard.handler import PhaseContext
from cloudforge.wizard.messages import KeyPress
from cloudforge.wizard.state import WizardState


def make_registry(*names: str) -> PackageRegistry:
    return PackageRegistry([
        Package(name=n, display_name=n.title(), description=f"{n} tool", category=categorize(n))
        for n in names
    ])


def press(key: str, character=None) -> KeyPress:
    if character is None and len(key) == 1:
        character = key
    return KeyPress(key, character)


def type_text(handler, ctx, text: str) -> None:
    for ch in text:
        handler.update(ctx, KeyPress("space" if ch == " " else ch, ch))


@pytest.fixture
def registry() -> PackageRegistry:
    return make_registry("bat", "btop", "docker", "make", "ripgrep")


@pytest.fixture
def store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.yaml")


@pytest.fixture
def ctx(registry, store, tmp_path: Path) -> PhaseContext:
    return PhaseContext(
        wizard=WizardState(registry),
        project_dir=tmp_path,
        store=store,
        local_key_finder=lambda: [],
    )
