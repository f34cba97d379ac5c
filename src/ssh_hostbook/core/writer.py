from __future__ import annotations

import logging
import re
import shutil
from typing import List, Optional, Sequence, Set

from .model import HostEntry
from .parser import DESCRIPTION_RE, FIELD_BY_DIRECTIVE, TAGS_RE, describe
from .util import (
    PathLike,
    expand_path,
    format_tags,
    is_blank,
    is_comment,
    leading_whitespace,
    parse_tags,
    replace_value,
    split_directive,
)

logger = logging.getLogger(__name__)

DEFAULT_INDENT = "    "

# Directives written for a fresh entry, and appended to an existing block
# when they gained a value, in this order.
DIRECTIVE_ORDER = (
    ("address", "HostName"),
    ("user", "User"),
    ("port", "Port"),
    ("identity_file", "IdentityFile"),
)


def detect_indent(lines: Sequence[str]) -> str:
    """Indentation of the first indented directive below the Host line."""
    for line in lines:
        if is_blank(line) or is_comment(line):
            continue
        _, name, _ = split_directive(line)
        if name == "host":
            continue
        indent = leading_whitespace(line)
        if indent:
            return indent
    return DEFAULT_INDENT


def _host_line_index(lines: Sequence[str]) -> Optional[int]:
    for i, line in enumerate(lines):
        if is_blank(line) or is_comment(line):
            continue
        _, name, value = split_directive(line)
        if name == "host" and value:
            return i
    return None


def _header_lines(entry: HostEntry) -> List[str]:
    lines = []
    if entry.description:
        lines.append(f"# Description: {entry.description}")
    if entry.tags:
        lines.append(f"# Tags: {format_tags(entry.tags)}")
    return lines


def _render_new(entry: HostEntry) -> List[str]:
    lines = _header_lines(entry)
    lines.append(f"Host {entry.alias}")
    for attr, keyword in DIRECTIVE_ORDER:
        value = getattr(entry, attr)
        if value:
            lines.append(f"{DEFAULT_INDENT}{keyword} {value}")
    return lines


def _retype_comment(line: str, m: re.Match, text: str) -> List[str]:
    if not text:
        return []
    return [f"{line[:m.start('text')]} {text}"]


def _render_existing(entry: HostEntry, host_index: int) -> List[str]:
    lines = entry.raw_lines
    leading = lines[:host_index]
    seen: Set[str] = set()
    out: List[str] = []

    for i, line in enumerate(lines):
        if i == host_index:
            has_desc = any(DESCRIPTION_RE.match(ln) for ln in leading)
            if entry.description and not has_desc and entry.description != describe(leading):
                out.append(f"# Description: {entry.description}")
            if entry.tags and not any(TAGS_RE.match(ln) for ln in leading):
                out.append(f"# Tags: {format_tags(entry.tags)}")
            _, _, alias = split_directive(line)
            out.append(line if alias == entry.alias else replace_value(line, entry.alias))
            continue

        if is_blank(line) or is_comment(line):
            m = DESCRIPTION_RE.match(line) if i < host_index else None
            if m and "description" not in seen:
                seen.add("description")
                if m.group("text").strip() == entry.description:
                    out.append(line)
                else:
                    out.extend(_retype_comment(line, m, entry.description))
                continue
            m = TAGS_RE.match(line) if i < host_index else None
            if m and "tags" not in seen:
                seen.add("tags")
                if parse_tags(m.group("text")) == list(entry.tags):
                    out.append(line)
                else:
                    out.extend(_retype_comment(line, m, format_tags(entry.tags)))
                continue
            out.append(line)
            continue

        _, name, old = split_directive(line)
        attr = FIELD_BY_DIRECTIVE.get(name)
        if attr is None or not old or attr in seen:
            out.append(line)
            continue
        seen.add(attr)
        new = getattr(entry, attr)
        if not new:
            continue
        out.append(line if new == old else replace_value(line, new))

    indent = detect_indent(lines)
    missing = [
        f"{indent}{keyword} {getattr(entry, attr)}"
        for attr, keyword in DIRECTIVE_ORDER
        if attr not in seen and getattr(entry, attr)
    ]
    if missing:
        # after the block's last directive, ahead of trailing blanks/comments
        pos = max(i for i, ln in enumerate(out) if not (is_blank(ln) or is_comment(ln))) + 1
        out[pos:pos] = missing
    return out


def render_entry(entry: HostEntry) -> List[str]:
    """Serialize one entry, reusing its original lines where it has them."""
    if entry.raw_lines:
        host_index = _host_line_index(entry.raw_lines)
        if host_index is not None:
            return _render_existing(entry, host_index)
        logger.debug("Raw lines of %r have no Host line; rendering from scratch", entry.alias)
    return _render_new(entry)


def _needs_separator(out: List[str], block: List[str], prev_end: Optional[int], entry: HostEntry) -> bool:
    """prev_end is the source line the previous chunk ended on, if known."""
    if not out or not block:
        return False
    if is_blank(out[-1]) or is_blank(block[0]):
        return False
    # chunks that touched in the source stay touching
    if prev_end and entry.raw_lines and entry.start_line:
        return prev_end + 1 != entry.start_line
    return True


def render_config(
    entries: Sequence[HostEntry],
    standalone_comments: Sequence[str],
    newline: str = "\n",
    final_newline: bool = True,
) -> str:
    out: List[str] = list(standalone_comments)
    # parsed standalone lines are the head of the file, lines 1..n
    prev_end: Optional[int] = len(out)
    for entry in entries:
        block = render_entry(entry)
        if _needs_separator(out, block, prev_end, entry):
            out.append("")
        out.extend(block)
        prev_end = entry.end_line if entry.raw_lines else None
    if not out:
        return ""
    text = newline.join(out)
    return text + newline if final_newline else text


def write_config(
    path: PathLike,
    entries: Sequence[HostEntry],
    standalone_comments: Sequence[str],
    newline: str = "\n",
    final_newline: bool = True,
) -> None:
    """Rewrite the config file at path.

    The text goes to a sibling ``.tmp`` file first and is then moved over the
    target, so an interrupted write never leaves a truncated config behind.
    """
    config_path = expand_path(path)
    if config_path.is_symlink():
        config_path = config_path.resolve()
    config_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    text = render_config(entries, standalone_comments, newline, final_newline)
    tmp = config_path.with_name(config_path.name + ".tmp")
    try:
        with tmp.open("w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        if config_path.exists():
            shutil.copymode(config_path, tmp)
        else:
            tmp.chmod(0o600)
        tmp.replace(config_path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("Wrote %d host entries to %s", len(entries), config_path)


__all__ = ["DEFAULT_INDENT", "detect_indent", "render_config", "render_entry", "write_config"]
