"""Package discovery from installer scripts under scripts/packages/."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class PackageDiscoveryError(Exception):
    """Package scripts could not be discovered."""
    pass


class Category(Enum):
    CLI = "CLI Tools"
    SHELL = "Shell & Terminal"
    GIT = "Git & Version Control"
    DOCKER = "Docker & Containers"
    SYSTEM = "System"


CATEGORY_ORDER = [
    Category.SYSTEM,
    Category.CLI,
    Category.SHELL,
    Category.GIT,
    Category.DOCKER,
]

_PACKAGE_NAME_RE = re.compile(r'^PACKAGE_NAME="([^"]+)"')
_GITHUB_REPO_RE = re.compile(r'GITHUB_REPO="([^"]+)"')
_HEADER_RE = re.compile(r"^#\s*(\w+)\s+[Ii]nstaller")
_DESC_RE = re.compile(r"^#\s+([A-Z].+)$")
_SEPARATOR_RE = re.compile(r"^#[=\-]*$|^#\s*$")

_SHELL_TOOLS = ("starship", "zoxide", "zsh", "oh-my-zsh", "zellij")

# Only the script header carries metadata
_MAX_HEADER_LINES = 50


@dataclass
class Package:
    name: str
    display_name: str = ""
    description: str = ""
    script_path: str = ""
    github_repo: str = ""
    category: Category = Category.CLI
    default: bool = True


class PackageRegistry:
    """Ordered collection of discovered packages.

    Read-only once discovery has finished; the wizard keeps its own
    selection map and never mutates the registry.
    """

    def __init__(self, packages: Optional[list[Package]] = None):
        self.packages: list[Package] = []
        self._by_name: dict[str, Package] = {}
        self.by_category: dict[Category, list[Package]] = {}
        for pkg in packages or []:
            self.add(pkg)

    def add(self, pkg: Package) -> None:
        if pkg.name in self._by_name:
            self.packages = [p for p in self.packages if p.name != pkg.name]
            self.by_category[self._by_name[pkg.name].category].remove(self._by_name[pkg.name])
        self.packages.append(pkg)
        self._by_name[pkg.name] = pkg
        self.by_category.setdefault(pkg.category, []).append(pkg)

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def get(self, name: str) -> Optional[Package]:
        return self._by_name.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self.packages)


def categorize(name: str) -> Category:
    """Pick a category from the package name."""
    lowered = name.lower()
    if "docker" in lowered:
        return Category.DOCKER
    if "git" in lowered or "delta" in lowered:
        if lowered == "lazygit":
            return Category.CLI
        return Category.GIT
    if any(tool in lowered for tool in _SHELL_TOOLS):
        return Category.SHELL
    if lowered == "apt":
        return Category.SYSTEM
    return Category.CLI


def parse_script(path: Path) -> Optional[Package]:
    """Extract package metadata from an installer script header.

    Returns None when the script does not declare PACKAGE_NAME.
    Raises OSError if the file cannot be read.
    """
    name = ""
    display_name = ""
    description = ""
    github_repo = ""
    looking_for_desc = False

    with open(path, encoding="utf-8", errors="replace") as f:
        for line_num, raw in enumerate(f, start=1):
            if line_num > _MAX_HEADER_LINES:
                break
            line = raw.rstrip("\n")

            m = _PACKAGE_NAME_RE.match(line)
            if m:
                name = m.group(1).strip()

            m = _GITHUB_REPO_RE.search(line)
            if m:
                github_repo = m.group(1).strip()

            m = _HEADER_RE.match(line)
            if m:
                display_name = m.group(1)
                looking_for_desc = True
                continue

            if looking_for_desc:
                if _SEPARATOR_RE.match(line):
                    continue
                m = _DESC_RE.match(line)
                if m:
                    desc = m.group(1).strip()
                    if not desc.startswith("http"):
                        description = desc
                        looking_for_desc = False
                else:
                    looking_for_desc = False

    if not name:
        return None

    return Package(
        name=name,
        display_name=display_name or name,
        description=description,
        script_path=str(path),
        github_repo=github_repo,
        category=categorize(name),
    )


def discover(scripts_dir: Path) -> PackageRegistry:
    """Scan ``scripts_dir/packages`` for installer scripts."""
    packages_dir = Path(scripts_dir) / "packages"
    if not packages_dir.exists():
        raise PackageDiscoveryError(f"packages directory not found: {packages_dir}")
    if not packages_dir.is_dir():
        raise PackageDiscoveryError(f"packages path is not a directory: {packages_dir}")

    registry = PackageRegistry()
    for script in sorted(packages_dir.glob("*.sh")):
        if script.name == "_template.sh" or not script.is_file():
            continue
        try:
            pkg = parse_script(script)
        except OSError as e:
            logger.warning("Skipping unreadable package script %s: %s", script, e)
            continue
        if pkg is not None:
            registry.add(pkg)

    logger.info("Discovered %d packages in %s", len(registry), packages_dir)
    return registry
