from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

GLOBAL_ALIAS = "*"


@dataclass
class HostEntry:
    """One ``Host`` block of an ssh config file.

    ``raw_lines`` holds the block's original text (leading comments included)
    and is what lets the writer rewrite only the lines whose value changed.
    An entry built by hand has no raw lines and is serialized from scratch.
    """

    alias: str
    address: str = ""
    user: str = ""
    port: str = ""
    identity_file: str = ""
    description: str = ""
    tags: List[str] = field(default_factory=list)
    comment: str = ""
    raw_lines: List[str] = field(default_factory=list)
    start_line: int = 0
    end_line: int = 0

    @property
    def is_global(self) -> bool:
        return self.alias == GLOBAL_ALIAS

    def is_valid(self) -> bool:
        if not self.alias:
            return False
        # Host * carries options for every host and needs no HostName
        if self.is_global:
            return True
        return bool(self.address)

    def connection_string(self) -> str:
        if self.user:
            return f"{self.user}@{self.address}"
        return self.address

    def ssh_command(self) -> str:
        cmd = "ssh"
        if self.port:
            cmd += f" -p {self.port}"
        return f"{cmd} {self.connection_string()}"

    def display_address(self) -> str:
        address = self.address or self.alias
        if self.port and self.port != "22":
            address += f":{self.port}"
        return address

    def matches(self, term: str) -> bool:
        if not term:
            return True
        needle = term.lower()
        haystack = [self.alias, self.address, self.user, self.description, *self.tags]
        return any(needle in value.lower() for value in haystack)

    def validate(self) -> None:
        """Raise ValueError if the entry would not survive the next parse."""
        if not self.alias.strip():
            raise ValueError("Host alias is required")
        if not self.is_global and not self.address.strip():
            raise ValueError("HostName is required")
        if self.port:
            if not self.port.isdigit() or not 0 < int(self.port) < 65536:
                raise ValueError(f"Invalid port: {self.port}")


__all__ = ["GLOBAL_ALIAS", "HostEntry"]
