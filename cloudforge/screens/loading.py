"""Screen shown while package scripts are discovered."""

from textual.app import ComposeResult
from textual.containers import Center, Container, Middle
from textual.screen import Screen
from textual.widgets import Footer, Header, LoadingIndicator, Static


class LoadingScreen(Screen):
    """Screen shown while discovering packages."""

    def compose(self) -> ComposeResult:
        yield Header()
        with Center():
            with Middle():
                with Container(id="loading-box"):
                    yield Static("⚡ Discovering packages...", id="loading-msg")
                    yield LoadingIndicator()
        yield Footer()
