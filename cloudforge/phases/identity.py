"""Git identity, host identity and optional service secrets."""

from __future__ import annotations

import getpass

from cloudforge.phases.form import FormPhase
from cloudforge.wizard.fields import TEXT, Field
from cloudforge.wizard.handler import PhaseContext

DEFAULT_USERNAME = "ubuntu"
DEFAULT_HOSTNAME = "ubuntu-server"


def current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return DEFAULT_USERNAME


class GitPhase(FormPhase):
    title = "Git Configuration"
    subtitle = "Identity written to the user's ~/.gitconfig"

    def __init__(self):
        super().__init__("Git Config", [
            Field(TEXT, "git_name", "Name"),
            Field(TEXT, "git_email", "Email"),
        ])

    def seed(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        w.init_input("git_name", placeholder="Your Name", char_limit=128, value=w.data.git_name)
        w.init_input("git_email", placeholder="you@example.com", char_limit=128, value=w.data.git_email)

    def save(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        w.data.git_name = w.input_value("git_name").strip()
        w.data.git_email = w.input_value("git_email").strip()


class HostPhase(FormPhase):
    title = "Host Details"

    def __init__(self):
        super().__init__("Host Details", [
            Field(TEXT, "display_name", "Display Name"),
            Field(TEXT, "username", "Username"),
            Field(TEXT, "hostname", "Hostname"),
        ])

    def seed(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        data = w.data
        w.init_input("display_name", placeholder=data.git_name or "Full Name", char_limit=128,
                     value=data.display_name or data.git_name)
        w.init_input("username", placeholder=DEFAULT_USERNAME, char_limit=32,
                     value=data.username or current_user())
        w.init_input("hostname", placeholder=DEFAULT_HOSTNAME, char_limit=64, value=data.hostname)

    def save(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        w.data.display_name = w.input_value("display_name").strip()
        w.data.username = w.input_value("username").strip() or DEFAULT_USERNAME
        w.data.hostname = w.input_value("hostname").strip() or DEFAULT_HOSTNAME


class OptionalPhase(FormPhase):
    title = "Optional Services"
    subtitle = "Both values are written to secrets.env only"

    def __init__(self):
        super().__init__("Optional Services", [
            Field(TEXT, "tailscale_key", "Tailscale Auth Key"),
            Field(TEXT, "github_pat", "GitHub PAT"),
        ])

    def seed(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        w.init_input("tailscale_key", placeholder="tskey-auth-... (optional)",
                     value=w.data.tailscale_key, password=True)
        w.init_input("github_pat", placeholder="ghp_... (optional)",
                     value=w.data.github_pat, password=True)

    def save(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        w.data.tailscale_key = w.input_value("tailscale_key").strip()
        w.data.github_pat = w.input_value("github_pat").strip()
