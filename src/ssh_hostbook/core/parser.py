from __future__ import annotations

import enum
import logging
import re
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from .model import HostEntry
from .util import PathLike, expand_path, is_blank, is_comment, parse_tags, split_directive

logger = logging.getLogger(__name__)

DESCRIPTION_RE = re.compile(r"^\s*#\s*Description:(?P<text>.*)$")
TAGS_RE = re.compile(r"^\s*#\s*Tags:(?P<text>.*)$")

# ssh_config keyword -> HostEntry attribute
FIELD_BY_DIRECTIVE: Dict[str, str] = {
    "hostname": "address",
    "user": "user",
    "port": "port",
    "identityfile": "identity_file",
}


class ParsedConfig(NamedTuple):
    entries: List[HostEntry]
    standalone_comments: List[str]
    dropped: List[HostEntry]
    # line ending of the source and whether its last line was terminated
    newline: str = "\n"
    final_newline: bool = True


class ParserState(enum.Enum):
    OUTSIDE_BLOCK = "outside"
    INSIDE_BLOCK = "inside"


def detect_newline(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def split_lines(text: str, newline: str = "\n") -> List[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    if newline == "\r\n":
        lines = [line[:-1] if line.endswith("\r") else line for line in lines]
    return lines


def describe(leading: Sequence[str]) -> str:
    """Pick a description out of the comment lines preceding a Host line.

    An explicit ``# Description:`` line wins; otherwise the first plain
    comment is used, skipping ``##`` banners and ``# Tags:`` lines.
    """
    for line in leading:
        m = DESCRIPTION_RE.match(line)
        if m:
            return m.group("text").strip()
    for line in leading:
        stripped = line.strip()
        if not stripped.startswith("#") or stripped.startswith("##") or TAGS_RE.match(line):
            continue
        text = stripped[1:].strip()
        if text:
            return text
    return ""


def extract_tags(leading: Sequence[str]) -> List[str]:
    for line in leading:
        m = TAGS_RE.match(line)
        if m:
            return parse_tags(m.group("text"))
    return []


class _ConfigParser:
    def __init__(self) -> None:
        self.state = ParserState.OUTSIDE_BLOCK
        self.current: Optional[HostEntry] = None
        self.buffer: List[str] = []
        # comment lines at the end of the open block; they go to the next
        # Host if nothing else comes between them and it
        self.trailing_comments = 0
        self.entries: List[HostEntry] = []
        self.standalone: List[str] = []
        self.dropped: List[HostEntry] = []

    def feed(self, lineno: int, line: str) -> None:
        if is_comment(line):
            self._add_passive(line)
            if self.state is ParserState.INSIDE_BLOCK:
                self.trailing_comments += 1
            return
        if is_blank(line):
            if self.state is ParserState.INSIDE_BLOCK:
                self._add_passive(line)
                self.trailing_comments = 0
            else:
                # a blank line cuts pending comments off from the next Host
                self._flush_buffer(line)
            return

        keyword, name, value = split_directive(line)
        if name == "host" and value:
            self._open_block(lineno, line, value)
            return

        self.trailing_comments = 0
        if self.state is ParserState.INSIDE_BLOCK:
            assert self.current is not None
            self.current.raw_lines.append(line)
            attr = FIELD_BY_DIRECTIVE.get(name)
            if attr and value and not getattr(self.current, attr):
                setattr(self.current, attr, value)
            return

        # Directive outside any Host block: not modeled, kept as-is
        logger.debug("Unscoped directive %r kept as standalone line", keyword)
        self._flush_buffer(line)

    def finish(self) -> ParsedConfig:
        if self.state is ParserState.INSIDE_BLOCK:
            self._close_block()
        self.standalone.extend(self.buffer)
        self.buffer = []
        return ParsedConfig(self.entries, self.standalone, self.dropped)

    def _flush_buffer(self, line: str) -> None:
        self.standalone.extend(self.buffer)
        self.buffer = []
        self.standalone.append(line)

    def _add_passive(self, line: str) -> None:
        if self.state is ParserState.INSIDE_BLOCK:
            assert self.current is not None
            self.current.raw_lines.append(line)
        else:
            self.buffer.append(line)

    def _open_block(self, lineno: int, line: str, alias: str) -> None:
        if self.state is ParserState.INSIDE_BLOCK:
            assert self.current is not None
            leading: List[str] = []
            if self.trailing_comments:
                leading = self.current.raw_lines[-self.trailing_comments:]
                del self.current.raw_lines[-self.trailing_comments:]
            self._close_block()
        else:
            leading = self.buffer
        self.buffer = []
        self.trailing_comments = 0

        self.current = HostEntry(
            alias=alias,
            description=describe(leading),
            tags=extract_tags(leading),
            raw_lines=[*leading, line],
            start_line=lineno - len(leading),
        )
        self.state = ParserState.INSIDE_BLOCK

    def _close_block(self) -> None:
        entry = self.current
        assert entry is not None
        entry.end_line = entry.start_line + len(entry.raw_lines) - 1
        passive = [ln for ln in entry.raw_lines if is_comment(ln) or is_blank(ln)]
        entry.comment = "".join(ln + "\n" for ln in passive)
        if entry.is_valid():
            self.entries.append(entry)
        else:
            self.dropped.append(entry)
            logger.debug(
                "Dropping Host %r (lines %d-%d): no HostName", entry.alias, entry.start_line, entry.end_line
            )
        self.current = None
        self.state = ParserState.OUTSIDE_BLOCK


def parse_ssh_config(text: str) -> ParsedConfig:
    newline = detect_newline(text)
    parser = _ConfigParser()
    for lineno, line in enumerate(split_lines(text, newline), start=1):
        parser.feed(lineno, line)
    result = parser.finish()
    return result._replace(newline=newline, final_newline=not text or text.endswith("\n"))


def read_config(path: PathLike) -> ParsedConfig:
    """Parse the file at path; a missing file reads as an empty config."""
    config_path = expand_path(path)
    try:
        # newline="" keeps \r\n line endings intact
        with config_path.open(encoding="utf-8", newline="") as fh:
            text = fh.read()
    except FileNotFoundError:
        logger.debug("No ssh config at %s, starting empty", config_path)
        return ParsedConfig([], [], [])
    return parse_ssh_config(text)


def parse_config(path: PathLike) -> Tuple[List[HostEntry], List[str]]:
    result = read_config(path)
    return result.entries, result.standalone_comments


__all__ = [
    "DESCRIPTION_RE",
    "FIELD_BY_DIRECTIVE",
    "TAGS_RE",
    "ParsedConfig",
    "ParserState",
    "describe",
    "detect_newline",
    "extract_tags",
    "parse_config",
    "parse_ssh_config",
    "read_config",
    "split_lines",
]
