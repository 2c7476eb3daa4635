"""GitHub client for SSH key and profile lookups."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class GitHubError(Exception):
    """GitHub request failed."""
    pass


@dataclass
class GitHubProfile:
    id: int = 0
    login: str = ""
    name: str = ""
    email: str = ""

    def best_email(self) -> str:
        """Public email, or the noreply address when none is published."""
        if self.email:
            return self.email
        if self.id and self.login:
            return f"{self.id}+{self.login}@users.noreply.github.com"
        return ""


@dataclass
class GitHubData:
    """Result of fetching keys and profile; either half may have failed."""
    keys: list[str] = field(default_factory=list)
    profile: Optional[GitHubProfile] = None
    keys_err: Optional[str] = None
    profile_err: Optional[str] = None


class GitHubClient:
    """Thin wrapper over the public GitHub endpoints."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: int = 10,
        keys_url: str = "https://github.com",
        api_url: str = "https://api.github.com",
    ):
        self._session = session or requests.Session()
        self.timeout = timeout
        self.keys_url = keys_url.rstrip("/")
        self.api_url = api_url.rstrip("/")

    @classmethod
    def from_config(cls, config) -> "GitHubClient":
        gh = config.github
        return cls(timeout=gh.timeout, keys_url=gh.keys_url, api_url=gh.api_url)

    def _get(self, url: str, user: str, headers: Optional[dict] = None):
        try:
            resp = self._session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("GitHub request to %s failed: %s", url, e)
            raise GitHubError("failed to connect to GitHub") from e
        if resp.status_code == 404:
            raise GitHubError(f"GitHub user '{user}' not found")
        if resp.status_code != 200:
            raise GitHubError(f"GitHub returned status {resp.status_code}")
        return resp

    def fetch_ssh_keys(self, user: str) -> list[str]:
        resp = self._get(f"{self.keys_url}/{user}.keys", user)
        return [line.strip() for line in resp.text.splitlines() if line.strip()]

    def fetch_profile(self, user: str) -> GitHubProfile:
        resp = self._get(
            f"{self.api_url}/users/{user}", user,
            headers={"Accept": "application/vnd.github.v3+json"},
        )
        try:
            data = resp.json()
        except ValueError as e:
            raise GitHubError(f"Invalid profile response from GitHub: {e}")
        return GitHubProfile(
            id=int(data.get("id") or 0),
            login=data.get("login") or "",
            name=data.get("name") or "",
            email=data.get("email") or "",
        )

    def fetch_all(self, user: str) -> GitHubData:
        """Fetch keys and profile; failures are recorded, not raised."""
        result = GitHubData()
        try:
            result.keys = self.fetch_ssh_keys(user)
        except GitHubError as e:
            result.keys_err = str(e)
        try:
            result.profile = self.fetch_profile(user)
        except GitHubError as e:
            result.profile_err = str(e)
        return result
