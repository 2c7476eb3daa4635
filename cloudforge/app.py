"""Main CloudForge Textual Application."""

import logging
from typing import Optional

from textual import work
from textual.app import App
from textual.binding import Binding

from cloudforge.config import Config
from cloudforge.github import GitHubClient
from cloudforge.packages import PackageDiscoveryError, PackageRegistry, discover
from cloudforge.phases import new_registry
from cloudforge.screens import CreateVMScreen, LoadingScreen
from cloudforge.settings import CloudImage, SettingsError, SettingsStore
from cloudforge.wizard.controller import WizardController
from cloudforge.wizard.handler import PhaseContext
from cloudforge.wizard.keys import KeyMap
from cloudforge.wizard.state import WizardState

logger = logging.getLogger(__name__)


class CloudForgeApp(App):
    """CloudForge - cloud-init VM provisioning TUI."""

    TITLE = "CloudForge"
    SUB_TITLE = "Cloud-init VM Provisioning"
    CSS_PATH = "styles/app.tcss"

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", show=True, priority=True),
    ]

    def __init__(self, config: Config):
        super().__init__()
        self.config = config
        self.store = SettingsStore(config.paths.settings_path)
        self.github = GitHubClient.from_config(config)
        self.keys = KeyMap.from_dict(config.keys)

    def on_mount(self):
        self.push_screen(LoadingScreen())
        self.discover_packages()

    @work(thread=True)
    def discover_packages(self):
        """Scan the package scripts in a background thread."""
        scripts = self.config.paths.scripts_path
        try:
            registry = discover(scripts)
        except PackageDiscoveryError as e:
            logger.warning("Package discovery failed: %s", e)
            self.call_from_thread(self._on_packages_loaded, None, str(e))
            return
        logger.info("Discovered %d packages in %s", len(registry), scripts)
        self.call_from_thread(self._on_packages_loaded, registry, None)

    def _cloud_images(self) -> list[CloudImage]:
        try:
            return self.store.load().cloud_images
        except SettingsError as e:
            logger.warning("Could not read cloud images: %s", e)
            return []

    def build_controller(self, registry: Optional[PackageRegistry]) -> WizardController:
        ctx = PhaseContext(
            wizard=WizardState(registry),
            keys=self.keys,
            project_dir=self.config.paths.project_path,
            store=self.store,
            github=self.github,
            cloud_images=self._cloud_images(),
            deploy_config=self.config.deploy,
        )
        return WizardController(ctx, new_registry())

    def _on_packages_loaded(self, registry: Optional[PackageRegistry], error: Optional[str]):
        self.pop_screen()  # Remove loading screen
        if error:
            self.notify(f"No packages available: {error}", severity="warning", timeout=8)
        self.push_screen(CreateVMScreen(self.build_controller(registry)))
