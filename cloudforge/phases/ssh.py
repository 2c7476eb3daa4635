"""SSH keys: import from a GitHub account and pick local public keys."""

from __future__ import annotations

import logging
from typing import Any

from rich.markup import escape

from cloudforge.github import GitHubClient
from cloudforge.models import dedupe
from cloudforge.ssh_keys import key_label
from cloudforge.wizard.fields import hint, render_text_field, section_title
from cloudforge.wizard.handler import DYNAMIC_FIELDS, BasePhase, Cmd, PhaseContext
from cloudforge.wizard.messages import GitHubDataMessage, KeyPress

logger = logging.getLogger(__name__)

GITHUB_USER_FIELD = 0


class SSHPhase(BasePhase):
    def __init__(self):
        super().__init__("SSH Keys", DYNAMIC_FIELDS)
        self.fetching = False

    def known_keys(self, ctx: PhaseContext) -> list[str]:
        """Every key the user can toggle: GitHub, local, then previously saved."""
        data = ctx.wizard.data
        return dedupe(data.github_ssh_keys + data.local_ssh_keys + list(ctx.wizard.ssh_key_selected))

    def init(self, ctx: PhaseContext) -> Cmd:
        w = ctx.wizard
        w.focused_field = GITHUB_USER_FIELD
        self.fetching = False
        w.init_input("github_user", placeholder="your-github-username", char_limit=64,
                     value=w.data.github_user)
        w.focus_input("github_user")

        try:
            w.data.local_ssh_keys = ctx.local_key_finder()
        except OSError as e:
            logger.warning("Local SSH key discovery failed: %s", e)
            w.data.local_ssh_keys = []
        for key in w.data.local_ssh_keys:
            w.ssh_key_selected.setdefault(key, True)
        return None

    def update(self, ctx: PhaseContext, msg: Any) -> tuple[bool, Cmd]:
        if isinstance(msg, GitHubDataMessage):
            if not self.fetching:
                return False, None
            self.fetching = False
            self.apply_github_data(ctx, msg)
            return True, None

        if not isinstance(msg, KeyPress) or self.fetching:
            return False, None

        w, keys = ctx.wizard, ctx.keys
        key_list = self.known_keys(ctx)
        on_user = w.focused_field == GITHUB_USER_FIELD

        if keys.matches(msg.key, "up", on_user):
            w.navigate_field(-1, len(key_list))
        elif keys.matches(msg.key, "down", on_user):
            w.navigate_field(1, len(key_list))
        elif keys.matches(msg.key, "confirm"):
            return self.confirm(ctx)
        elif not on_user and keys.matches(msg.key, "toggle"):
            key = key_list[w.focused_field - 1]
            w.ssh_key_selected[key] = not w.ssh_key_selected.get(key, False)
        elif on_user:
            w.edit_input("github_user", msg.key, msg.character)
        w.focus_input("github_user" if w.focused_field == GITHUB_USER_FIELD else None)
        return False, None

    def confirm(self, ctx: PhaseContext) -> tuple[bool, Cmd]:
        user = ctx.wizard.input_value("github_user").strip()
        ctx.wizard.data.github_user = user
        if not user:
            return True, None

        client = ctx.github or GitHubClient()
        self.fetching = True
        ctx.message = "Fetching data from GitHub..."
        logger.info("Fetching SSH keys and profile for GitHub user %s", user)

        def fetch() -> GitHubDataMessage:
            return GitHubDataMessage(user, client.fetch_all(user))

        return False, fetch

    def apply_github_data(self, ctx: PhaseContext, msg: GitHubDataMessage) -> None:
        data = ctx.wizard.data
        result = msg.data
        ctx.message = ""
        if result.keys_err:
            logger.warning("GitHub key fetch for %s failed: %s", msg.user, result.keys_err)
            ctx.message = "Warning: " + result.keys_err
        elif result.keys:
            data.github_ssh_keys = list(result.keys)
            for key in result.keys:
                ctx.wizard.ssh_key_selected[key] = True

        if result.profile_err:
            logger.warning("GitHub profile fetch for %s failed: %s", msg.user, result.profile_err)
        profile = result.profile
        if profile is not None:
            if profile.name:
                data.git_name = profile.name
            email = profile.best_email()
            if email:
                data.git_email = email
            data.github_id = profile.id

    def save(self, ctx: PhaseContext) -> None:
        w = ctx.wizard
        w.data.github_user = w.input_value("github_user").strip()
        w.data.ssh_keys = dedupe([k for k, on in w.ssh_key_selected.items() if on])

    def view(self, ctx: PhaseContext) -> str:
        w = ctx.wizard
        out = [
            section_title("SSH Key Configuration"),
            " [dim]Keys authorized for the default user.[/dim]\n\n",
            render_text_field(w, "GitHub Username", "github_user", GITHUB_USER_FIELD),
            "     [dim]Leave empty to skip GitHub SSH key import[/dim]\n\n",
        ]
        key_list = self.known_keys(ctx)
        if key_list:
            out.append(" [bold]Public keys[/bold]\n")
        else:
            out.append(" [dim]No local keys found in ~/.ssh[/dim]\n")
        for i, key in enumerate(key_list, start=1):
            focused = w.focused_field == i
            cursor = "[bold]>[/bold]" if focused else " "
            mark = "[bold green]✓[/bold green]" if w.ssh_key_selected.get(key) else "[dim]○[/dim]"
            source = "github" if key in w.data.github_ssh_keys else "local"
            label = escape(key_label(key))
            if focused:
                label = f"[bold]{label}[/bold]"
            out.append(f" {cursor} {mark} {label}  [dim]({source})[/dim]\n")

        if self.fetching:
            out.append("\n [yellow]Fetching from GitHub...[/yellow]\n")
        k = ctx.keys
        out.append(hint(
            f"{k.help('up')}/{k.help('down')} move   {k.help('toggle')} toggle key   "
            f"{k.help('confirm')} continue   {k.help('back')} back"
        ))
        return "".join(out)
