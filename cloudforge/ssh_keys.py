"""Local SSH public key discovery."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_LABEL_BODY_CHARS = 16


def find_local_keys(ssh_dir: Optional[Path] = None) -> list[str]:
    """Return the contents of every non-empty ``*.pub`` file in ``ssh_dir``.

    Files are read in filename order. Unreadable files are skipped.
    """
    ssh_dir = Path(ssh_dir) if ssh_dir else Path.home() / ".ssh"
    keys: list[str] = []
    if not ssh_dir.is_dir():
        return keys
    for pub in sorted(ssh_dir.glob("*.pub")):
        try:
            content = pub.read_text().strip()
        except OSError as e:
            logger.warning("Could not read %s: %s", pub, e)
            continue
        if content:
            keys.append(content)
    return keys


def key_label(key: str) -> str:
    """Short label for a public key: ``type comment`` or a truncated body."""
    parts = key.split()
    if not parts:
        return ""
    key_type = parts[0]
    if len(parts) >= 3:
        return f"{key_type} {' '.join(parts[2:])}"
    if len(parts) == 2:
        body = parts[1]
        if len(body) > _LABEL_BODY_CHARS:
            body = body[:_LABEL_BODY_CHARS] + "..."
        return f"{key_type} {body}"
    return key_type
