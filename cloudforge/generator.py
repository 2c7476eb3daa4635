"""Rendering of config.env, secrets.env, summary.md and cloud-init documents."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml

from cloudforge.models import FullConfig
from cloudforge.packages import CATEGORY_ORDER, PackageRegistry

INSTALL_DIR = "/opt/cloudforge"


def _q(value: str) -> str:
    """Double-quote a value for a sourceable shell file."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$").replace("`", "\\`")
    return f'"{escaped}"'


def _b(value: bool) -> str:
    return "true" if value else "false"


def package_env_var(name: str) -> str:
    """``lazy-git`` -> ``PACKAGE_LAZY_GIT_ENABLED``."""
    return "PACKAGE_" + name.replace("-", "_").upper() + "_ENABLED"


def disabled_package_exports(disabled: list[str]) -> str:
    if not disabled:
        return "# All packages enabled"
    lines = ["# Disabled packages"]
    lines.extend(f"export {package_env_var(p)}=false" for p in disabled)
    return "\n".join(lines)


def config_env(cfg: FullConfig) -> str:
    lines = [
        "#!/bin/bash",
        "# Generated by CloudForge. Non-secret settings only.",
        "",
        "# User",
        f"USER_NAME={_q(cfg.full_name)}",
        f"USER_EMAIL={_q(cfg.email)}",
        f"USER_USERNAME={_q(cfg.username)}",
        f"USERNAME={_q(cfg.username)}",
        f"HOSTNAME={_q(cfg.hostname)}",
        f"MACHINE_USER_NAME={_q(cfg.machine_user_name)}",
        "",
        "# Git",
        f"GIT_DEFAULT_BRANCH={_q(cfg.git_default_branch)}",
        f"GIT_PUSH_AUTO_SETUP_REMOTE={_b(cfg.git_push_auto_setup_remote)}",
        f"GIT_PULL_REBASE={_b(cfg.git_pull_rebase)}",
        f"GIT_PAGER={_q(cfg.git_pager)}",
        f"GIT_URL_REWRITE_GITHUB={_b(cfg.git_url_rewrite_github)}",
        "",
        "# Tailscale",
        f"TAILSCALE_ENABLED={_b(cfg.tailscale_enabled)}",
        f"TAILSCALE_SSH_ENABLED={_b(cfg.tailscale_ssh_enabled)}",
        f"TAILSCALE_EXIT_NODE={_b(cfg.tailscale_exit_node)}",
        "",
        "# Docker",
        f"DOCKER_ENABLED={_b(cfg.docker_enabled)}",
        f"DOCKER_ADD_TO_GROUP={_b(cfg.docker_add_to_group)}",
        f"DOCKER_START_ON_BOOT={_b(cfg.docker_start_on_boot)}",
        "",
        "# Packages",
    ]
    lines.extend(f"export {package_env_var(p)}=true" for p in cfg.enabled_packages)
    lines.extend(f"export {package_env_var(p)}=false" for p in cfg.disabled_packages)
    return "\n".join(lines) + "\n"


def secrets_env(cfg: FullConfig) -> str:
    lines = [
        "#!/bin/bash",
        "# Generated by CloudForge. Keep this file private.",
        "",
        f"USERNAME={_q(cfg.username)}",
        f"HOSTNAME={_q(cfg.hostname)}",
    ]
    for i, key in enumerate(cfg.ssh_public_keys, start=1):
        lines.append(f"SSH_PUBLIC_KEY_{i}={_q(key)}")
    first = cfg.ssh_public_keys[0] if cfg.ssh_public_keys else ""
    lines += [
        f"SSH_PUBLIC_KEY={_q(first)}",
        f"TAILSCALE_AUTH_KEY={_q(cfg.tailscale_auth_key)}",
        f"GITHUB_USER={_q(cfg.github_user)}",
        f"GITHUB_PAT={_q(cfg.github_pat)}",
    ]
    if cfg.repo_url:
        lines += [
            f"REPO_URL={_q(cfg.repo_url)}",
            f"REPO_BRANCH={_q(cfg.repo_branch)}",
        ]
    return "\n".join(lines) + "\n"


def escape_table_cell(s: str) -> str:
    return s.replace("|", "\\|").replace("\r", "").replace("\n", " ")


def summary_markdown(cfg: FullConfig, registry: Optional[PackageRegistry]) -> str:
    enabled = set(cfg.enabled_packages)
    out = [
        f"# {escape_table_cell(cfg.hostname)}",
        "",
        "| Setting | Value |",
        "|---------|-------|",
        f"| Username | {escape_table_cell(cfg.username)} |",
        f"| Hostname | {escape_table_cell(cfg.hostname)} |",
        f"| Name | {escape_table_cell(cfg.full_name)} |",
        f"| Email | {escape_table_cell(cfg.email)} |",
        f"| SSH keys | {len(cfg.ssh_public_keys)} |",
        "",
        "## Packages",
    ]

    if registry is not None:
        for cat in CATEGORY_ORDER:
            pkgs = registry.by_category.get(cat)
            if not pkgs:
                continue
            out += [
                "",
                f"### {cat.value}",
                "",
                "| Package | Description | Enabled |",
                "|---------|-------------|---------|",
            ]
            for pkg in pkgs:
                mark = "yes" if pkg.name in enabled else "no"
                out.append(
                    f"| {escape_table_cell(pkg.display_name)} "
                    f"| {escape_table_cell(pkg.description)} | {mark} |"
                )

    tailscale = "tailscale" in enabled or cfg.tailscale_enabled
    docker = "docker" in enabled or cfg.docker_enabled
    out += [
        "",
        "## Services",
        "",
        f"- Tailscale: {'enabled' if tailscale else 'disabled'}",
        f"- Docker: {'enabled' if docker else 'disabled'}",
    ]
    return "\n".join(out) + "\n"


def cloud_init_document(cfg: FullConfig) -> dict[str, Any]:
    packages = ["git", "curl"]
    if cfg.docker_enabled or "docker" in cfg.enabled_packages:
        packages.append("docker.io")

    user: dict[str, Any] = {
        "name": cfg.username,
        "groups": ["sudo"],
        "shell": "/bin/bash",
        "sudo": "ALL=(ALL) NOPASSWD:ALL",
        "ssh_authorized_keys": list(cfg.ssh_public_keys),
    }
    if cfg.machine_user_name:
        user["gecos"] = cfg.machine_user_name

    runcmd: list[Any] = []
    if cfg.repo_url:
        runcmd.append([
            "git", "clone", "--branch", cfg.repo_branch or "main",
            cfg.repo_url, INSTALL_DIR,
        ])
        exports = disabled_package_exports(cfg.disabled_packages).replace("\n", "; ")
        runcmd.append([
            "bash", "-c",
            f"{exports}; cd {INSTALL_DIR} && ./scripts/cloud-init/install-all.sh",
        ])

    doc: dict[str, Any] = {
        "hostname": cfg.hostname,
        "users": [user],
        "package_update": True,
        "packages": packages,
        "write_files": [{
            "path": f"{INSTALL_DIR}/config.env",
            "permissions": "0644",
            "content": config_env(cfg),
        }],
    }
    if runcmd:
        doc["runcmd"] = runcmd
    return doc


def render_cloud_init(cfg: FullConfig) -> str:
    body = yaml.safe_dump(cloud_init_document(cfg), default_flow_style=False, sort_keys=False)
    return "#cloud-config\n" + body


def write_file(path: Path, content: str, mode: int = 0o644) -> Path:
    """Atomically replace ``path`` with ``content``.

    The temporary file gets ``mode`` before any content is written, so a
    secrets file is never readable with looser permissions.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        os.fchmod(fd, mode)
        with os.fdopen(fd, "w") as f:
            f.write(content)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    return path


def write_config_env(cfg: FullConfig, out_dir: Path) -> Path:
    return write_file(out_dir / "config.env", config_env(cfg))


def write_secrets_env(cfg: FullConfig, out_dir: Path) -> Path:
    """Write ``cloud-init/secrets.env`` readable by the owner only."""
    return write_file(out_dir / "cloud-init" / "secrets.env", secrets_env(cfg), mode=0o600)
