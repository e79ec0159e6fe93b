import pytest

from procvisor.ini import Ini, Section


def _ini(text):
    ini = Ini()
    ini.load_string(text)
    return ini


def test_sections_and_values():
    ini = _ini("[program:test]\ncommand=/bin/ls\nnumprocs=2\n[supervisord]\nlogfile=x.log\n")
    assert [s.name for s in ini.sections()] == ["program:test", "supervisord"]
    section = ini.get_section("program:test")
    assert section.keys() == ["command", "numprocs"]
    assert section.get_value("command") == "/bin/ls"
    assert section.get_int("numprocs") == 2


def test_value_keeps_inner_equals_and_quotes():
    section = _ini('[p]\nenvironment=A="env 1",B=x\n').get_section("p")
    assert section.get_value("environment") == 'A="env 1",B=x'


def test_comments_and_blank_lines_are_ignored():
    ini = _ini("# comment\n\n[a]\n; another\nk=v\n")
    assert ini.get_section("a").keys() == ["k"]


def test_empty_section_exists():
    ini = _ini("[unix_http_server]\n")
    assert ini.get_section("unix_http_server").keys() == []


def test_missing_section_raises():
    with pytest.raises(KeyError):
        _ini("[a]\nk=v\n").get_section("b")


def test_missing_key_raises_and_default_used():
    section = _ini("[a]\nk=v\n").get_section("a")
    with pytest.raises(KeyError):
        section.get_value("missing")
    assert section.get_value_with_default("missing", "dflt") == "dflt"
    assert section.get_value_with_default("k", "dflt") == "v"


def test_get_int_rejects_non_numbers():
    section = _ini("[a]\nn=abc\n").get_section("a")
    with pytest.raises(ValueError):
        section.get_int("n")


def test_add_replaces_and_has_key():
    section = Section("s")
    assert not section.has_key("k")
    section.add("k", "one")
    section.add("k", "two")
    assert section.has_key("k")
    assert section.get_value("k") == "two"
    assert section.keys() == ["k"]


def test_second_load_merges_sections():
    ini = _ini("[a]\nx=1\n")
    ini.load_string("[a]\ny=2\n[b]\nz=3\n")
    assert ini.get_section("a").keys() == ["x", "y"]
    assert ini.get_section("b").get_value("z") == "3"


def test_load_file_and_lookup_with_default(tmp_path):
    path = tmp_path / "supervisord.conf"
    path.write_text("[supervisord]\nlogfile=/var/log/s.log\n")
    ini = Ini()
    ini.load_file(path)
    assert ini.get_value_with_default("supervisord", "logfile", "d") == "/var/log/s.log"
    assert ini.get_value_with_default("supervisord", "other", "d") == "d"
    assert ini.get_value_with_default("nosection", "logfile", "d") == "d"


def test_load_missing_file_raises(tmp_path):
    with pytest.raises(OSError):
        Ini().load_file(tmp_path / "absent.conf")


def test_backslash_continuation_joins_lines():
    section = _ini("[a]\ncommand=/bin/run \\\n--flag\n").get_section("a")
    assert section.get_value("command") == "/bin/run --flag"