"""Tests for zip archive output."""

import zipfile

from intelx_cli.archive import write_zip


def test_writes_entries(tmp_path):
    out = tmp_path / "nested" / "result.zip"
    count = write_zip([("dir/a.txt", b"alpha"), ("b.bin", b"\x00\x01")], str(out))
    assert count == 2
    with zipfile.ZipFile(out) as zf:
        assert sorted(zf.namelist()) == ["b.bin", "dir/a.txt"]
        assert zf.read("dir/a.txt") == b"alpha"


def test_duplicate_names_are_kept(tmp_path):
    out = tmp_path / "dupes.zip"
    write_zip([("a.txt", b"1"), ("a.txt", b"2"), ("/a.txt", b"3")], str(out))
    with zipfile.ZipFile(out) as zf:
        assert zf.namelist() == ["a.txt", "a_1.txt", "a_2.txt"]
        assert zf.read("a_1.txt") == b"2"
