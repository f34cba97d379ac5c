import json
import textwrap

import pytest
from click.testing import CliRunner

from ssh_hostbook import cli
from ssh_hostbook.cli import main


@pytest.fixture
def paths(tmp_path):
    return tmp_path / ".ssh" / "config", tmp_path / "visits"


def run(paths, *args, **kwargs):
    config, visits = paths
    return CliRunner().invoke(main, ["--config", str(config), "--visits-file", str(visits), *args], **kwargs)


def test_add_then_list_json(paths):
    result = run(paths, "add", "--host", "db", "--hostname", "10.0.0.5", "--user", "admin", "--tags", "prod,db")
    assert result.exit_code == 0, result.output
    assert paths[0].read_text(encoding="utf-8") == (
        "# Tags: prod, db\nHost db\n    HostName 10.0.0.5\n    User admin\n"
    )

    result = run(paths, "list", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [(h["alias"], h["hostname"], h["user"], h["tags"]) for h in data] == [
        ("db", "10.0.0.5", "admin", ["prod", "db"])
    ]
    assert data[0]["ssh_command"] == "ssh admin@10.0.0.5"


def test_add_rejects_duplicate_alias(paths):
    assert run(paths, "add", "--host", "db", "--hostname", "a").exit_code == 0
    result = run(paths, "add", "--host", "db", "--hostname", "b")
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_add_requires_hostname(paths):
    result = run(paths, "add", "--host", "db")
    assert result.exit_code == 2
    assert "HostName is required" in result.output
    assert not paths[0].exists()


def test_list_orders_by_visits_and_hides_global(paths):
    config, visits = paths
    config.parent.mkdir()
    config.write_text(
        textwrap.dedent(
            """\
            Host *
                ServerAliveInterval 30

            Host alpha
                HostName a.example.com

            Host beta
                HostName b.example.com
                Port 2200
            """
        ),
        encoding="utf-8",
    )
    visits.write_text("beta:5\n", encoding="utf-8")
    result = run(paths, "list")
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0].startswith("beta")
    assert "b.example.com:2200" in lines[0]
    assert "(5 visits)" in lines[0]
    assert lines[1].startswith("alpha")
    assert len(lines) == 2

    data = json.loads(run(paths, "list", "--json", "--all").output)
    assert "*" in [h["alias"] for h in data]


def test_list_warns_about_dropped_blocks(paths):
    config, _ = paths
    config.parent.mkdir()
    config.write_text("Host broken\n    User x\n\nHost ok\n    HostName ok\n", encoding="utf-8")
    result = run(paths, "list")
    assert result.exit_code == 0
    assert "1 host block(s) without HostName" in result.output
    assert "next save: broken" in result.output


def test_list_empty(paths):
    result = run(paths, "list")
    assert result.exit_code == 0
    assert "No hosts found" in result.output


def test_edit_keeps_block_formatting(paths):
    config, _ = paths
    config.parent.mkdir()
    config.write_text("Host web\n\tHostName web.example.com\n\tUser root\n", encoding="utf-8")
    result = run(paths, "edit", "web", "--port", "2222", "--user", "admin")
    assert result.exit_code == 0, result.output
    assert config.read_text(encoding="utf-8") == (
        "Host web\n\tHostName web.example.com\n\tUser admin\n\tPort 2222\n"
    )


def test_edit_without_options(paths):
    config, _ = paths
    config.parent.mkdir()
    config.write_text("Host web\n    HostName w\n", encoding="utf-8")
    result = run(paths, "edit", "web")
    assert result.exit_code == 0
    assert "Nothing to change" in result.output


def test_edit_rename_moves_visit_count(paths):
    config, visits = paths
    config.parent.mkdir()
    config.write_text("Host web\n    HostName w\n", encoding="utf-8")
    visits.write_text("web:3\n", encoding="utf-8")
    result = run(paths, "edit", "web", "--host", "www")
    assert result.exit_code == 0, result.output
    assert config.read_text(encoding="utf-8") == "Host www\n    HostName w\n"
    assert visits.read_text(encoding="utf-8") == "www:3\n"


def test_show_unknown_host(paths):
    result = run(paths, "show", "ghost")
    assert result.exit_code == 1
    assert "No host named 'ghost'" in result.output


def test_show(paths):
    config, _ = paths
    config.parent.mkdir()
    config.write_text("# Description: Box\nHost a\n    HostName h\n    User u\n", encoding="utf-8")
    result = run(paths, "show", "a")
    assert result.exit_code == 0
    assert "Description: Box" in result.output
    assert "SSH Command: ssh u@h" in result.output
    assert "Visits: 0" in result.output


def test_delete_with_yes(paths):
    config, _ = paths
    config.parent.mkdir()
    config.write_text("Host a\n    HostName 1\n\nHost b\n    HostName 2\n", encoding="utf-8")
    result = run(paths, "delete", "a", "--yes")
    assert result.exit_code == 0, result.output
    assert config.read_text(encoding="utf-8") == "Host b\n    HostName 2\n"


def test_delete_aborted(paths):
    config, _ = paths
    config.parent.mkdir()
    original = "Host a\n    HostName 1\n"
    config.write_text(original, encoding="utf-8")
    result = run(paths, "delete", "a", input="n\n")
    assert result.exit_code == 1
    assert config.read_text(encoding="utf-8") == original


def test_connect_counts_visit_and_runs_ssh(paths, monkeypatch):
    config, visits = paths
    config.parent.mkdir()
    config.write_text("Host a\n    HostName 1\n", encoding="utf-8")
    calls = []

    def fake_call(argv):
        calls.append(argv)
        return 0

    monkeypatch.setattr(cli.subprocess, "call", fake_call)
    result = run(paths, "connect", "a")
    assert result.exit_code == 0, result.output
    assert calls == [["ssh", "a"]]
    assert visits.read_text(encoding="utf-8") == "a:1\n"


def test_clear_visits(paths):
    _, visits = paths
    visits.write_text("a:4\nb:1\n", encoding="utf-8")
    result = run(paths, "clear-visits", "--yes")
    assert result.exit_code == 0
    assert "Visit counts cleared" in result.output
    assert visits.read_text(encoding="utf-8") == ""


def test_backup(paths, tmp_path):
    config, _ = paths
    config.parent.mkdir()
    config.write_text("Host a\n    HostName 1\n", encoding="utf-8")
    dest = tmp_path / "backups"
    result = run(paths, "backup", "--dest", str(dest))
    assert result.exit_code == 0, result.output
    assert "Backup created:" in result.output
    (copy,) = dest.iterdir()
    assert copy.read_text(encoding="utf-8") == "Host a\n    HostName 1\n"


def test_backup_missing_config(paths, tmp_path):
    result = run(paths, "backup", "--dest", str(tmp_path / "b"))
    assert result.exit_code == 1
    assert "does not exist" in result.output
