from __future__ import annotations

import dataclasses
import logging
import shutil
import time
from pathlib import Path
from typing import List

from .model import HostEntry
from .parser import ParsedConfig, read_config
from .util import PathLike, expand_path
from .writer import write_config

logger = logging.getLogger(__name__)


def _save(path: PathLike, parsed: ParsedConfig, entries: List[HostEntry]) -> None:
    write_config(
        path,
        entries,
        parsed.standalone_comments,
        newline=parsed.newline,
        final_newline=parsed.final_newline,
    )


def add_entry(path: PathLike, entry: HostEntry) -> None:
    parsed = read_config(path)
    _save(path, parsed, [*parsed.entries, entry])
    logger.info("Added host %s", entry.alias)


def update_entry(path: PathLike, alias: str, new_entry: HostEntry) -> bool:
    """Replace the first entry named alias with new_entry.

    An entry without raw lines (e.g. built from a form) takes over the
    replaced block's lines, so only the changed directives are rewritten.
    Returns False when no entry matched; the file is written back as parsed.
    """
    parsed = read_config(path)
    entries = parsed.entries
    found = False
    for i, entry in enumerate(entries):
        if entry.alias == alias:
            if not new_entry.raw_lines:
                new_entry = dataclasses.replace(
                    new_entry,
                    comment=entry.comment,
                    raw_lines=list(entry.raw_lines),
                    start_line=entry.start_line,
                    end_line=entry.end_line,
                )
            entries[i] = new_entry
            found = True
            break
    if not found:
        logger.debug("update_entry: no host named %r in %s", alias, path)
    _save(path, parsed, entries)
    if found:
        logger.info("Updated host %s", alias)
    return found


def delete_entry(path: PathLike, alias: str) -> None:
    parsed = read_config(path)
    kept = [entry for entry in parsed.entries if entry.alias != alias]
    _save(path, parsed, kept)
    logger.info("Deleted %d host(s) named %s", len(parsed.entries) - len(kept), alias)


def backup_config(path: PathLike, backup_dir: PathLike) -> Path:
    """Copy the config into backup_dir under a timestamped name."""
    source = expand_path(path)
    dest_dir = expand_path(backup_dir)
    dest_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    stamp = time.strftime("%Y-%m-%d_%H%M%S")
    dest = dest_dir / f"{source.name}.{stamp}"
    counter = 1
    while dest.exists():
        dest = dest_dir / f"{source.name}.{stamp}.{counter}"
        counter += 1
    shutil.copy2(source, dest)
    logger.info("Backed up %s to %s", source, dest)
    return dest


__all__ = ["add_entry", "backup_config", "delete_entry", "update_entry"]
