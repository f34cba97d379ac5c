from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import List, Optional

from rich.text import Text
from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Footer, Header, Input, Label, ListItem, ListView, Static

from ..core import store
from ..core.keys import list_identity_files
from ..core.model import HostEntry
from ..core.parser import parse_config
from ..core.tracker import VisitTracker, order_entries
from ..core.util import format_tags, parse_tags

logger = logging.getLogger(__name__)

CUSTOM_PATH = "(custom path)"

# (HostEntry attribute, label, placeholder)
EDITOR_FIELDS = [
    ("alias", "Host", "host-alias"),
    ("address", "HostName", "example.com or 192.168.1.1"),
    ("user", "User", "root"),
    ("port", "Port", "22"),
    ("identity_file", "IdentityFile", "~/.ssh/id_rsa (optional, ctrl+k to pick)"),
    ("description", "Description", "Description (optional)"),
    ("tags", "Tags", "prod,dev,stage (comma-separated, optional)"),
]


class HostItem(ListItem):
    """List row: alias on top, address below."""

    def __init__(self, entry: HostEntry):
        super().__init__(Label(entry.alias, classes="alias"), Label(entry.display_address(), classes="address"))
        self.entry = entry


class KeyItem(ListItem):
    def __init__(self, path: str):
        super().__init__(Label(path))
        self.path = path


class HostDetail(Static):
    def show_entry(self, entry: Optional[HostEntry], visits: int = 0) -> None:
        if entry is None:
            self.update(Text("No host selected", style="dim"))
            return
        text = Text()

        def row(label: str, value: str, placeholder: str = "(not set)", style: str = "") -> None:
            text.append(f"{label}:\n", style="bold")
            if value:
                text.append(f"{value}\n\n", style=style)
            else:
                text.append(f"{placeholder}\n\n", style="dim")

        if entry.description:
            row("Description", entry.description)
        row("Host", entry.alias)
        row("HostName", entry.address)
        row("User", entry.user)
        row("Port", entry.port, placeholder="(default: 22)")
        row("IdentityFile", entry.identity_file)
        if entry.tags:
            row("Tags", format_tags(entry.tags))
        connection = entry.connection_string()
        if entry.port:
            connection += f":{entry.port}"
        row("Connection", connection)
        row("SSH Command", entry.ssh_command(), style="cyan")
        if visits:
            row("Visits", str(visits))
        self.update(text)


class ConfirmScreen(ModalScreen[bool]):
    BINDINGS = [
        Binding("y", "confirm", "Yes"),
        Binding("n,escape", "cancel", "No"),
    ]

    def __init__(self, heading: str, prompt: str):
        super().__init__()
        self.heading = heading
        self.prompt = prompt

    def compose(self) -> ComposeResult:  # type: ignore[override]
        with Vertical(classes="dialog"):
            yield Label(self.heading, classes="title")
            yield Static(Text(self.prompt), classes="warning")
            yield Label("y: confirm | n/Esc: cancel", classes="help")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class KeyPickerScreen(ModalScreen[Optional[str]]):
    """Pick a private key from ~/.ssh; "" means the user wants to type a path."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, key_paths: List[str]):
        super().__init__()
        self.key_paths = key_paths

    def compose(self) -> ComposeResult:  # type: ignore[override]
        with Vertical(classes="dialog"):
            yield Label("Select SSH Key", classes="title")
            if not self.key_paths:
                yield Static("No keys found in ~/.ssh/", classes="help")
            yield ListView(*[KeyItem(path) for path in [*self.key_paths, CUSTOM_PATH]], id="keys")
            yield Label("Enter: select | Esc: cancel", classes="help")

    def on_mount(self) -> None:
        self.query_one("#keys", ListView).focus()

    @on(ListView.Selected, "#keys")
    def pick(self, event: ListView.Selected) -> None:
        path = getattr(event.item, "path", "")
        self.dismiss("" if path == CUSTOM_PATH else path)

    def action_cancel(self) -> None:
        self.dismiss(None)


class EditorScreen(ModalScreen[Optional[HostEntry]]):
    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("ctrl+s", "save", "Save"),
        Binding("ctrl+k", "pick_key", "Pick key"),
    ]

    def __init__(self, entry: Optional[HostEntry] = None):
        super().__init__()
        self.entry = entry

    def compose(self) -> ComposeResult:  # type: ignore[override]
        heading = "Add New Host" if self.entry is None else "Edit Host"
        with VerticalScroll(id="editor"):
            yield Label(heading, classes="title")
            for name, label, placeholder in EDITOR_FIELDS:
                yield Label(f"{label}:", classes="label")
                yield Input(value=self._initial(name), placeholder=placeholder, id=f"field-{name}")
            yield Static("", id="editor-error")
            with Horizontal(id="editor-buttons"):
                yield Button("Save", id="save", variant="primary")
                yield Button("Pick key", id="pick-key")
                yield Button("Cancel", id="cancel")
            yield Label("Tab: next field | Enter: save | Esc: cancel", classes="help")

    def _initial(self, name: str) -> str:
        if self.entry is None:
            return {"user": "root", "port": "22"}.get(name, "")
        if name == "tags":
            return format_tags(self.entry.tags)
        return getattr(self.entry, name)

    def _value(self, name: str) -> str:
        return self.query_one(f"#field-{name}", Input).value.strip()

    def build_entry(self) -> HostEntry:
        values = {name: self._value(name) for name, _, _ in EDITOR_FIELDS if name != "tags"}
        tags = parse_tags(self._value("tags"))
        if self.entry is None:
            return HostEntry(tags=tags, **values)
        # keep raw lines so only the edited directives get rewritten
        return dataclasses.replace(self.entry, tags=tags, **values)

    def show_error(self, message: str) -> None:
        self.query_one("#editor-error", Static).update(Text(f"Error: {message}", style="bold red"))

    def action_save(self) -> None:
        entry = self.build_entry()
        try:
            entry.validate()
        except ValueError as exc:
            self.show_error(str(exc))
            return
        self.dismiss(entry)

    def action_cancel(self) -> None:
        self.dismiss(None)

    def action_pick_key(self) -> None:
        def picked(key: Optional[str]) -> None:
            field = self.query_one("#field-identity_file", Input)
            if key:
                field.value = key
            field.focus()

        self.app.push_screen(KeyPickerScreen(list_identity_files()), picked)

    @on(Input.Submitted)
    def submitted(self) -> None:
        self.action_save()

    @on(Button.Pressed)
    def pressed(self, event: Button.Pressed) -> None:  # pragma: no cover - UI glue
        if event.button.id == "save":
            self.action_save()
        elif event.button.id == "pick-key":
            self.action_pick_key()
        elif event.button.id == "cancel":
            self.action_cancel()


class HostbookApp(App[Optional[str]]):
    """Two-panel host browser; exits with the alias to connect to, if any."""

    TITLE = "ssh-hostbook"
    CSS = """
    #main { height: 1fr; }
    #left { width: 44; border: round cyan; border-title-color: cyan; }
    #search { margin: 0 1; }
    #hosts { height: 1fr; }
    HostItem { padding: 0 1; }
    HostItem .address { color: $text-muted; }
    #detail { width: 1fr; border: round cyan; border-title-color: cyan; padding: 1 2; }
    ConfirmScreen, KeyPickerScreen, EditorScreen { align: center middle; }
    .dialog { width: 70; height: auto; max-height: 80%; border: round cyan; padding: 1 2; background: $surface; }
    #keys { height: auto; max-height: 20; }
    #editor { width: 80%; height: 90%; border: round cyan; padding: 1 2; background: $surface; }
    #editor-buttons { height: auto; margin-top: 1; }
    .title { color: cyan; text-style: bold; margin-bottom: 1; }
    .label { color: $text-muted; margin-top: 1; }
    .warning { color: yellow; }
    .help { color: $text-muted; margin-top: 1; }
    """
    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("slash", "search", "Search"),
        Binding("a", "add", "Add"),
        Binding("e", "edit", "Edit"),
        Binding("d", "delete", "Delete"),
        Binding("x", "clear_visits", "Clear visits"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
        Binding("escape", "focus_list", "List", show=False),
    ]

    def __init__(self, config_path: Path, visits_path: Optional[Path] = None):
        super().__init__()
        self.config_path = config_path
        self.tracker = VisitTracker.from_file(visits_path)
        self.entries: List[HostEntry] = []

    def compose(self) -> ComposeResult:  # type: ignore[override]
        yield Header()
        with Horizontal(id="main"):
            with Vertical(id="left"):
                yield Input(placeholder="Search...", id="search")
                yield ListView(id="hosts")
            yield HostDetail(id="detail")
        yield Footer()

    async def on_mount(self) -> None:  # pragma: no cover - simple load
        self.query_one("#left").border_title = "SSH Hosts"
        self.query_one("#detail").border_title = "Host Details"
        await self.reload()
        self.host_list.focus()

    @property
    def host_list(self) -> ListView:
        return self.query_one("#hosts", ListView)

    @property
    def selected(self) -> Optional[HostEntry]:
        item = self.host_list.highlighted_child
        return item.entry if isinstance(item, HostItem) else None

    async def reload(self, select: Optional[str] = None) -> None:
        """Re-read the config file; the global Host * block is not listed."""
        try:
            entries, _ = parse_config(self.config_path)
        except OSError as exc:
            logger.warning("Cannot read %s: %s", self.config_path, exc)
            self.notify(str(exc), title="Cannot read ssh config", severity="error")
            entries = []
        self.entries = order_entries([e for e in entries if not e.is_global], self.tracker)
        await self.refresh_list(select)

    async def refresh_list(self, select: Optional[str] = None) -> None:
        term = self.query_one("#search", Input).value
        visible = [e for e in self.entries if e.matches(term)]
        hosts = self.host_list
        await hosts.clear()
        await hosts.extend(HostItem(e) for e in visible)
        index = 0
        if select is not None:
            index = next((i for i, e in enumerate(visible) if e.alias == select), 0)
        hosts.index = index if visible else None
        self.update_detail()

    def update_detail(self) -> None:
        entry = self.selected
        visits = self.tracker.get_count(entry.alias) if entry else 0
        self.query_one("#detail", HostDetail).show_entry(entry, visits)

    @on(ListView.Highlighted, "#hosts")
    def highlighted(self) -> None:  # pragma: no cover - UI event
        self.update_detail()

    @on(Input.Changed, "#search")
    async def search_changed(self) -> None:  # pragma: no cover - UI event
        await self.refresh_list()

    @on(Input.Submitted, "#search")
    def search_done(self) -> None:  # pragma: no cover - UI event
        self.host_list.focus()

    @on(ListView.Selected, "#hosts")
    def connect(self, event: ListView.Selected) -> None:
        entry = getattr(event.item, "entry", None)
        if entry is None:
            return
        self.tracker.increment(entry.alias)
        try:
            self.tracker.save()
        except OSError as exc:
            self.notify(str(exc), title="Cannot save visit count", severity="error")
            return
        logger.info("Connecting to %s", entry.alias)
        self.exit(entry.alias)

    def action_search(self) -> None:
        self.query_one("#search", Input).focus()

    async def action_focus_list(self) -> None:
        search = self.query_one("#search", Input)
        if search.has_focus and search.value:
            search.value = ""
            await self.refresh_list()
        self.host_list.focus()

    def action_cursor_down(self) -> None:
        self.host_list.action_cursor_down()

    def action_cursor_up(self) -> None:
        self.host_list.action_cursor_up()

    def _alias_taken(self, alias: str, current: Optional[str] = None) -> bool:
        if alias == current:
            return False
        return any(e.alias == alias for e in self.entries)

    def action_add(self) -> None:
        async def saved(entry: Optional[HostEntry]) -> None:
            if entry is None:
                return
            if self._alias_taken(entry.alias):
                self.notify(f"Host {entry.alias!r} already exists", severity="error")
                return
            try:
                store.add_entry(self.config_path, entry)
            except OSError as exc:
                self.notify(str(exc), title="Save failed", severity="error")
                return
            await self.reload(select=entry.alias)

        self.push_screen(EditorScreen(), saved)

    def action_edit(self) -> None:
        current = self.selected
        if current is None:
            return

        async def saved(entry: Optional[HostEntry]) -> None:
            if entry is None:
                return
            if self._alias_taken(entry.alias, current.alias):
                self.notify(f"Host {entry.alias!r} already exists", severity="error")
                return
            try:
                store.update_entry(self.config_path, current.alias, entry)
                if entry.alias != current.alias and self.tracker.rename(current.alias, entry.alias):
                    self.tracker.save()
            except OSError as exc:
                self.notify(str(exc), title="Save failed", severity="error")
                return
            await self.reload(select=entry.alias)

        self.push_screen(EditorScreen(current), saved)

    def action_delete(self) -> None:
        current = self.selected
        if current is None:
            return

        async def confirmed(ok: Optional[bool]) -> None:
            if not ok:
                return
            try:
                store.delete_entry(self.config_path, current.alias)
            except OSError as exc:
                self.notify(str(exc), title="Delete failed", severity="error")
                return
            await self.reload()

        self.push_screen(ConfirmScreen("Confirm Delete", f"Delete host '{current.alias}'?"), confirmed)

    def action_clear_visits(self) -> None:
        async def confirmed(ok: Optional[bool]) -> None:
            if not ok:
                return
            try:
                self.tracker.clear_all()
            except OSError as exc:
                self.notify(str(exc), title="Cannot clear visits", severity="error")
                return
            await self.reload()

        message = "Clear all visit counts? This will reset the visit history for all hosts."
        self.push_screen(ConfirmScreen("Clear Visit Counts", message), confirmed)


__all__ = ["HostbookApp"]
