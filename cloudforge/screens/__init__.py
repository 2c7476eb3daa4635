"""CloudForge TUI screens."""

from cloudforge.screens.create_vm import CreateVMScreen
from cloudforge.screens.loading import LoadingScreen

__all__ = [
    "CreateVMScreen",
    "LoadingScreen",
]
