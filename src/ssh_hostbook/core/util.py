from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, List, Tuple, Union

PathLike = Union[str, Path]

# ssh_config separates keyword and value by whitespace or by one "="
DIRECTIVE_RE = re.compile(r"^\s*(?P<keyword>[^\s=]+)(?:\s*=\s*|\s+|$)(?P<value>.*)$")


def ssh_dir() -> Path:
    return Path.home() / ".ssh"


def default_config_path() -> Path:
    return ssh_dir() / "config"


def default_visits_path() -> Path:
    return Path.home() / ".ssh_hostbook"


def default_backup_dir() -> Path:
    return ssh_dir() / "hostbook_backups"


def expand_path(path: PathLike) -> Path:
    return Path(path).expanduser()


def is_blank(line: str) -> bool:
    return not line.strip()


def is_comment(line: str) -> bool:
    return line.strip().startswith("#")


def leading_whitespace(line: str) -> str:
    """Return the indentation of line exactly as written (tabs kept)."""
    return line[: len(line) - len(line.lstrip(" \t"))]


def split_directive(line: str) -> Tuple[str, str, str]:
    """Split a directive line into (keyword as written, lowercased keyword, value).

    Both ``Keyword value`` and ``Keyword=value`` are accepted. The value is the
    remaining tokens joined by single spaces.
    """
    m = DIRECTIVE_RE.match(line)
    if not m:
        return "", "", ""
    keyword = m.group("keyword")
    return keyword, keyword.lower(), " ".join(m.group("value").split())


def replace_value(line: str, value: str) -> str:
    """Swap the value of a directive line, keeping indent, keyword and separator."""
    m = DIRECTIVE_RE.match(line)
    if not m:
        return line
    prefix = line[: m.start("value")]
    if m.start("value") == m.end("keyword"):
        prefix += " "
    return prefix + value


def parse_tags(text: str) -> List[str]:
    """Turn ``"prod, db,,web"`` into ``["prod", "db", "web"]`` keeping order."""
    tags: List[str] = []
    for part in text.split(","):
        tag = part.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def format_tags(tags: Iterable[str]) -> str:
    return ", ".join(tags)


__all__ = [
    "default_backup_dir",
    "default_config_path",
    "default_visits_path",
    "expand_path",
    "format_tags",
    "is_blank",
    "is_comment",
    "leading_whitespace",
    "parse_tags",
    "replace_value",
    "split_directive",
    "ssh_dir",
]
