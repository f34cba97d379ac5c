from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .util import ssh_dir

logger = logging.getLogger(__name__)

KEY_PREFIXES = ("id_", "key_")
NOT_KEYS = {"config", "known_hosts", "authorized_keys"}


def list_identity_files(directory: Optional[Path] = None) -> List[str]:
    """Return private key candidates in ~/.ssh as ``~/.ssh/<name>`` strings."""
    directory = directory or ssh_dir()
    try:
        children = list(directory.iterdir())
    except OSError as exc:
        logger.debug("Cannot list %s: %s", directory, exc)
        return []
    keys = []
    for child in children:
        name = child.name
        if not child.is_file() or name.endswith(".pub") or name in NOT_KEYS:
            continue
        if name.startswith(KEY_PREFIXES):
            keys.append(f"~/.ssh/{name}")
    return sorted(keys)


__all__ = ["list_identity_files"]
