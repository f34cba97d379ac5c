import textwrap

import pytest

from ssh_hostbook.core import parser

SAMPLE = textwrap.dedent(
    """\
    # Personal hosts
    # Description: Production database
    Host prod
        HostName prod.example.com
        User deploy
        Port 2201
        IdentityFile ~/.ssh/id_prod
        ForwardAgent yes

    Host *
        AddKeysToAgent yes
    """
)


def test_parse_basic():
    result = parser.parse_ssh_config(SAMPLE)
    assert [e.alias for e in result.entries] == ["prod", "*"]
    h = result.entries[0]
    assert h.address == "prod.example.com"
    assert h.user == "deploy"
    assert h.port == "2201"
    assert h.identity_file == "~/.ssh/id_prod"
    assert h.description == "Production database"
    assert "    ForwardAgent yes" in h.raw_lines
    assert result.standalone_comments == []
    assert result.dropped == []


def test_line_numbers_and_raw_lines_match_source():
    lines = SAMPLE.splitlines()
    prod, star = parser.parse_ssh_config(SAMPLE).entries
    assert (prod.start_line, prod.end_line) == (1, 9)
    assert (star.start_line, star.end_line) == (10, 11)
    for entry in (prod, star):
        assert "\n".join(entry.raw_lines) == "\n".join(lines[entry.start_line - 1:entry.end_line])


def test_host_without_hostname_is_dropped_but_global_block_kept():
    text = "Host foo\n    User bob\n\nHost *\n    Compression yes\n"
    result = parser.parse_ssh_config(text)
    assert [e.alias for e in result.entries] == ["*"]
    assert [e.alias for e in result.dropped] == ["foo"]
    assert result.dropped[0].raw_lines[0] == "Host foo"


def test_description_line_wins_over_plain_comment():
    text = "# random note\n# Description: Prod box\nHost prod\n    HostName p.example.com\n"
    (entry,) = parser.parse_ssh_config(text).entries
    assert entry.description == "Prod box"


def test_description_falls_back_to_first_plain_comment():
    text = "##########\n# defaults\n##########\nHost *\n  ForwardX11 no\n"
    (entry,) = parser.parse_ssh_config(text).entries
    assert entry.description == "defaults"
    assert entry.comment == "##########\n# defaults\n##########\n"


def test_comment_right_before_host_belongs_to_next_block():
    text = textwrap.dedent(
        """\
        Host a
            HostName a.example.com

        # Description: Second box
        Host b
            HostName b.example.com
        """
    )
    a, b = parser.parse_ssh_config(text).entries
    assert a.raw_lines == ["Host a", "    HostName a.example.com", ""]
    assert a.description == ""
    assert b.description == "Second box"
    assert b.start_line == 4
    assert b.raw_lines[0] == "# Description: Second box"


def test_interior_comment_stays_in_block():
    text = "Host a\n    # jump box\n    HostName a.example.com\n"
    (entry,) = parser.parse_ssh_config(text).entries
    assert len(entry.raw_lines) == 3
    assert entry.description == ""
    assert entry.comment == "    # jump box\n"


def test_tags_comment():
    text = "# Tags: prod, db\nHost a\n    HostName x\n"
    (entry,) = parser.parse_ssh_config(text).entries
    assert entry.tags == ["prod", "db"]
    assert entry.description == ""


def test_directives_are_case_insensitive():
    text = "HOST a\n\thostname x.example.com\n\tUSER u\n\tpOrT 2022\n"
    (entry,) = parser.parse_ssh_config(text).entries
    assert (entry.alias, entry.address, entry.user, entry.port) == ("a", "x.example.com", "u", "2022")


def test_first_value_wins_and_whitespace_collapses():
    text = "Host a\n    HostName    one\n    HostName two\n    IdentityFile  ~/keys/my   key\n"
    (entry,) = parser.parse_ssh_config(text).entries
    assert entry.address == "one"
    assert entry.identity_file == "~/keys/my key"


def test_unscoped_directive_is_kept_as_standalone_line():
    text = "# global settings\nInclude config.d/*\n\nHost a\n    HostName x\n"
    result = parser.parse_ssh_config(text)
    assert result.standalone_comments == ["# global settings", "Include config.d/*", ""]
    (entry,) = result.entries
    assert entry.raw_lines[0] == "Host a"
    assert entry.start_line == 4


def test_comment_only_file():
    result = parser.parse_ssh_config("# just a comment\n\n")
    assert result.entries == []
    assert result.standalone_comments == ["# just a comment", ""]


def test_missing_file_is_empty(tmp_path):
    assert parser.parse_config(tmp_path / "nope") == ([], [])


def test_parse_config_expands_home(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    (tmp_path / ".ssh").mkdir()
    (tmp_path / ".ssh" / "config").write_text(SAMPLE, encoding="utf-8")
    entries, comments = parser.parse_config("~/.ssh/config")
    assert [e.alias for e in entries] == ["prod", "*"]
    assert comments == []


def test_read_errors_propagate(tmp_path):
    with pytest.raises(OSError):
        parser.parse_config(tmp_path)


def test_header_separated_by_blank_line_stays_standalone():
    text = "# My ssh config, keep me\n\nHost a\n    HostName x\n\nHost b\n    HostName y\n"
    result = parser.parse_ssh_config(text)
    assert result.standalone_comments == ["# My ssh config, keep me", ""]
    a, b = result.entries
    assert a.description == ""
    assert a.comment == "\n"
    assert a.raw_lines == ["Host a", "    HostName x", ""]
    assert a.start_line == 3


def test_only_comments_right_above_host_attach():
    text = "# file header\n\n# Description: Jump box\nHost jump\n    HostName j.example.com\n"
    result = parser.parse_ssh_config(text)
    assert result.standalone_comments == ["# file header", ""]
    (entry,) = result.entries
    assert entry.description == "Jump box"
    assert entry.start_line == 3


def test_equals_sign_separator():
    text = "Host=a\n    HostName=1.2.3.4\n    User = admin\n    Port= 2200\n"
    (entry,) = parser.parse_ssh_config(text).entries
    assert (entry.alias, entry.address, entry.user, entry.port) == ("a", "1.2.3.4", "admin", "2200")


def test_crlf_line_endings():
    result = parser.parse_ssh_config("# Description: Box\r\nHost a\r\n    HostName x\r\n")
    (entry,) = result.entries
    assert entry.raw_lines == ["# Description: Box", "Host a", "    HostName x"]
    assert entry.description == "Box"
    assert result.newline == "\r\n"
    assert result.final_newline is True


def test_missing_final_newline_is_recorded():
    result = parser.parse_ssh_config("Host a\n    HostName x")
    assert result.entries[0].address == "x"
    assert result.newline == "\n"
    assert result.final_newline is False


def test_read_config_keeps_crlf(tmp_path):
    path = tmp_path / "config"
    path.write_bytes(b"Host a\r\n    HostName x\r\n")
    result = parser.read_config(path)
    assert result.newline == "\r\n"
    assert result.entries[0].raw_lines == ["Host a", "    HostName x"]
