"""Tests for the config.env, secrets.env, summary and cloud-init renderers."""

import os
import stat

import yaml

from cloudforge import generator
from cloudforge.models import FullConfig

from conftest import make_registry


def sample_config(**overrides):
    values = dict(
        username="dev", hostname="devbox", full_name="Octo Cat", email="octo@example.com",
        ssh_public_keys=["ssh-ed25519 AAAA one", "ssh-rsa BBBB two"],
        enabled_packages=["bat", "docker"], disabled_packages=["lazy-git"],
        docker_enabled=True,
    )
    values.update(overrides)
    return FullConfig(**values)


class TestShellFiles:
    """Sourceable env files."""

    def test_config_env(self):
        text = generator.config_env(sample_config())
        assert text.startswith("#!/bin/bash\n")
        assert 'USER_NAME="Octo Cat"' in text
        assert 'MACHINE_USER_NAME="Octo Cat"' in text
        assert "DOCKER_ENABLED=true" in text
        assert "TAILSCALE_ENABLED=false" in text
        assert "export PACKAGE_BAT_ENABLED=true" in text
        assert "export PACKAGE_LAZY_GIT_ENABLED=false" in text

    def test_values_are_quoted(self):
        text = generator.config_env(sample_config(full_name='Bob "$(rm -rf)" `x`'))
        assert 'USER_NAME="Bob \\"\\$(rm -rf)\\" \\`x\\`"' in text

    def test_secrets_env(self):
        text = generator.secrets_env(sample_config(tailscale_auth_key="tskey-1", github_pat="ghp_x"))
        assert 'SSH_PUBLIC_KEY_1="ssh-ed25519 AAAA one"' in text
        assert 'SSH_PUBLIC_KEY_2="ssh-rsa BBBB two"' in text
        assert 'SSH_PUBLIC_KEY="ssh-ed25519 AAAA one"' in text
        assert 'TAILSCALE_AUTH_KEY="tskey-1"' in text
        assert 'GITHUB_PAT="ghp_x"' in text
        assert "REPO_URL" not in text

    def test_secrets_not_in_config_env(self):
        text = generator.config_env(sample_config(tailscale_auth_key="tskey-1", github_pat="ghp_x"))
        assert "tskey-1" not in text
        assert "ghp_x" not in text

    def test_disabled_exports(self):
        assert generator.disabled_package_exports([]) == "# All packages enabled"
        assert generator.disabled_package_exports(["yq"]).splitlines()[1] == "export PACKAGE_YQ_ENABLED=false"


class TestSummary:
    """Markdown summary."""

    def test_tables_and_services(self):
        registry = make_registry("bat", "docker")
        text = generator.summary_markdown(sample_config(hostname="dev|box"), registry)
        assert text.startswith("# dev\\|box\n")
        assert "### CLI Tools" in text
        assert "| Bat | bat tool | yes |" in text
        assert "- Docker: enabled" in text
        assert "- Tailscale: disabled" in text

    def test_without_registry(self):
        text = generator.summary_markdown(sample_config(), None)
        assert "## Packages" in text
        assert "###" not in text


class TestCloudInit:
    """cloud-config document."""

    def test_document(self):
        text = generator.render_cloud_init(sample_config())
        assert text.startswith("#cloud-config\n")
        doc = yaml.safe_load(text)
        user = doc["users"][0]
        assert doc["hostname"] == "devbox"
        assert user["name"] == "dev"
        assert user["gecos"] == "Octo Cat"
        assert user["ssh_authorized_keys"] == ["ssh-ed25519 AAAA one", "ssh-rsa BBBB two"]
        assert "docker.io" in doc["packages"]
        assert doc["write_files"][0]["path"] == "/opt/cloudforge/config.env"
        assert "runcmd" not in doc

    def test_repo_bootstrap(self):
        doc = generator.cloud_init_document(sample_config(repo_url="https://example.com/r.git"))
        clone, install = doc["runcmd"]
        assert clone[:4] == ["git", "clone", "--branch", "main"]
        assert "export PACKAGE_LAZY_GIT_ENABLED=false" in install[2]

    def test_write_file_mode(self, tmp_path):
        path = generator.write_file(tmp_path / "a" / "b.env", "x=1\n", mode=0o600)
        assert path.read_text() == "x=1\n"
        assert path.stat().st_mode & 0o777 == 0o600

    def test_secrets_never_written_with_loose_mode(self, tmp_path, monkeypatch):
        target = tmp_path / "secrets.env"
        target.write_text("OLD=1\n")
        target.chmod(0o644)
        modes = []
        real_replace = os.replace

        def recording_replace(src, dst):
            modes.append(stat.S_IMODE(os.stat(src).st_mode))
            real_replace(src, dst)

        monkeypatch.setattr(generator.os, "replace", recording_replace)
        generator.write_file(target, "GITHUB_PAT=\"secret\"\n", mode=0o600)

        assert modes == [0o600]
        assert stat.S_IMODE(target.stat().st_mode) == 0o600
        assert target.read_text() == "GITHUB_PAT=\"secret\"\n"
        assert [p.name for p in tmp_path.iterdir()] == ["secrets.env"]

    def test_env_file_writers(self, tmp_path):
        cfg = sample_config(github_pat="ghp_x")
        config_path = generator.write_config_env(cfg, tmp_path)
        secrets_path = generator.write_secrets_env(cfg, tmp_path)
        assert config_path == tmp_path / "config.env"
        assert "ghp_x" not in config_path.read_text()
        assert secrets_path == tmp_path / "cloud-init" / "secrets.env"
        assert 'GITHUB_PAT="ghp_x"' in secrets_path.read_text()
        assert stat.S_IMODE(secrets_path.stat().st_mode) == 0o600
