from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .model import HostEntry
from .util import PathLike, default_visits_path, expand_path

logger = logging.getLogger(__name__)


class VisitTracker:
    """Connection counts per host alias, stored as ``alias:count`` lines."""

    def __init__(self, path: Optional[PathLike] = None):
        self.path: Path = expand_path(path) if path else default_visits_path()
        self.counts: Dict[str, int] = {}

    @classmethod
    def from_file(cls, path: Optional[PathLike] = None) -> "VisitTracker":
        tracker = cls(path)
        tracker.load()
        return tracker

    def load(self) -> None:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return
        for line in text.splitlines():
            line = line.strip()
            if not line:
                continue
            host, sep, count = line.rpartition(":")
            if not sep or not host.strip():
                continue
            try:
                self.counts[host.strip()] = int(count.strip())
            except ValueError:
                logger.debug("Skipping malformed visit line %r in %s", line, self.path)

    def save(self) -> None:
        ranked = self.sort_by_visits(self.counts)
        text = "".join(f"{host}:{self.counts[host]}\n" for host in ranked)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(self.path)

    def get_count(self, alias: str) -> int:
        return self.counts.get(alias, 0)

    def increment(self, alias: str) -> int:
        self.counts[alias] = self.get_count(alias) + 1
        return self.counts[alias]

    def sort_by_visits(self, aliases: Iterable[str]) -> List[str]:
        """Most visited first; equal counts in alphabetical order."""
        return sorted(aliases, key=lambda alias: (-self.get_count(alias), alias))

    def rename(self, old: str, new: str) -> bool:
        """Carry the count of a renamed host over; False if it had none."""
        if old not in self.counts:
            return False
        self.counts[new] = self.get_count(new) + self.counts.pop(old)
        return True

    def clear_all(self) -> None:
        self.counts = {}
        self.save()


def order_entries(entries: Sequence[HostEntry], tracker: VisitTracker) -> List[HostEntry]:
    by_alias: Dict[str, HostEntry] = {}
    for entry in entries:
        by_alias.setdefault(entry.alias, entry)
    ranked = [by_alias[alias] for alias in tracker.sort_by_visits(by_alias)]
    # duplicate aliases keep their file order after the first
    ranked.extend(entry for entry in entries if by_alias[entry.alias] is not entry)
    return ranked


__all__ = ["VisitTracker", "order_entries"]
