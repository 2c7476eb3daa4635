"""Tests for the GitHub client with a stubbed requests session."""

import pytest
import requests

from cloudforge.github import GitHubClient, GitHubError, GitHubProfile


class StubResponse:
    def __init__(self, status_code=200, text="", payload=None):
        self.status_code = status_code
        self.text = text
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON")
        return self._payload


class StubSession:
    """Maps URLs to responses or exceptions."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def get(self, url, headers=None, timeout=None):
        self.requests.append((url, headers, timeout))
        answer = self.routes[url]
        if isinstance(answer, Exception):
            raise answer
        return answer


KEYS_URL = "https://github.com/octo.keys"
PROFILE_URL = "https://api.github.com/users/octo"


class TestGitHubClient:
    """Keys and profile lookups."""

    def test_fetch_ssh_keys(self):
        session = StubSession({KEYS_URL: StubResponse(text="ssh-ed25519 AAAA\n\nssh-rsa BBBB\n")})
        client = GitHubClient(session=session, timeout=3)
        assert client.fetch_ssh_keys("octo") == ["ssh-ed25519 AAAA", "ssh-rsa BBBB"]
        assert session.requests[0][2] == 3

    def test_fetch_profile(self):
        payload = {"id": 42, "login": "octo", "name": None, "email": None}
        session = StubSession({PROFILE_URL: StubResponse(payload=payload)})
        profile = GitHubClient(session=session).fetch_profile("octo")
        assert profile == GitHubProfile(id=42, login="octo")
        assert session.requests[0][1] == {"Accept": "application/vnd.github.v3+json"}

    @pytest.mark.parametrize("answer, message", [
        (StubResponse(status_code=404), "GitHub user 'octo' not found"),
        (StubResponse(status_code=500), "GitHub returned status 500"),
        (requests.ConnectionError("down"), "failed to connect to GitHub"),
    ])
    def test_errors(self, answer, message):
        client = GitHubClient(session=StubSession({KEYS_URL: answer}))
        with pytest.raises(GitHubError, match=message):
            client.fetch_ssh_keys("octo")

    def test_invalid_profile_json(self):
        client = GitHubClient(session=StubSession({PROFILE_URL: StubResponse()}))
        with pytest.raises(GitHubError, match="Invalid profile response"):
            client.fetch_profile("octo")

    def test_fetch_all_records_each_failure(self):
        session = StubSession({
            KEYS_URL: StubResponse(status_code=404),
            PROFILE_URL: StubResponse(payload={"id": 7, "login": "octo", "name": "Octo"}),
        })
        data = GitHubClient(session=session).fetch_all("octo")
        assert data.keys == []
        assert data.keys_err == "GitHub user 'octo' not found"
        assert data.profile.name == "Octo"
        assert data.profile_err is None

    def test_custom_endpoints(self):
        session = StubSession({
            "https://ghe.example.com/octo.keys": StubResponse(text="k\n"),
        })
        client = GitHubClient(session=session, keys_url="https://ghe.example.com/")
        assert client.fetch_ssh_keys("octo") == ["k"]


class TestBestEmail:
    """Public email, then the noreply address."""

    def test_public_email_wins(self):
        assert GitHubProfile(id=1, login="octo", email="o@example.com").best_email() == "o@example.com"

    def test_noreply(self):
        assert GitHubProfile(id=42, login="octo").best_email() == "42+octo@users.noreply.github.com"

    def test_nothing_known(self):
        assert GitHubProfile().best_email() == ""
