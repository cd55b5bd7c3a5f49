"""Unit tests for folder packaging."""

from __future__ import annotations

import io
import zipfile
from pathlib import Path

import pytest

from tinyqueries_core.archive import ZIP_EPOCH, Archive, ArchiveEntry, Archiver
from tinyqueries_core.errors import DirectoryUnreadableError


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """Folder with nested query sources and config files at several levels."""
    root = tmp_path / "tinyqueries"
    (root / "queries" / "nested").mkdir(parents=True)
    (root / "models").mkdir()
    (root / "b.json").write_bytes(b'{"b": 1}')
    (root / "a.json").write_bytes(b'{"a": 1}')
    (root / "tinyqueries.yaml").write_text("project: {}")
    (root / "queries" / "orders.sql").write_bytes(b"select * from orders")
    (root / "queries" / "tinyqueries.json").write_text("{}")
    (root / "queries" / "nested" / "deep.sql").write_bytes(b"select 1")
    (root / "queries" / "nested" / "tinyqueries.yml").write_text("a: 1")
    (root / "models" / "customer.json").write_bytes(b"\x00\x01binary\xff")
    return root


class TestArchiveEntry:
    """Tests for ArchiveEntry."""

    def test_directory_marker(self) -> None:
        entry = ArchiveEntry.directory("queries/")

        assert entry.is_dir
        assert entry.path == "queries"

    def test_file(self) -> None:
        entry = ArchiveEntry.file("a.sql", b"select 1")

        assert not entry.is_dir
        assert entry.content == b"select 1"

    def test_empty_file_is_not_a_directory(self) -> None:
        assert not ArchiveEntry.file("empty.sql", b"").is_dir


class TestArchiver:
    """Tests for Archiver.build()."""

    def test_excludes_config_files_at_every_level(self, source_tree: Path) -> None:
        archive = Archiver().build(source_tree)
        names = {p.rsplit("/", 1)[-1] for p in archive.paths()}

        assert "tinyqueries.json" not in names
        assert "tinyqueries.yml" not in names
        assert "tinyqueries.yaml" not in names

    def test_entries_are_relative_with_forward_slashes(self, source_tree: Path) -> None:
        archive = Archiver().build(source_tree)

        for path in archive.paths():
            assert "\\" not in path
            assert not path.startswith("/")
            assert not path.startswith("tinyqueries/")

    def test_name_sorted_depth_first_order(self, source_tree: Path) -> None:
        archive = Archiver().build(source_tree)

        assert archive.paths() == [
            "a.json",
            "b.json",
            "models",
            "models/customer.json",
            "queries",
            "queries/nested",
            "queries/nested/deep.sql",
            "queries/orders.sql",
        ]

    def test_file_content_is_byte_identical(self, source_tree: Path) -> None:
        files = Archiver().build(source_tree).files()

        assert files["models/customer.json"] == b"\x00\x01binary\xff"
        assert files["queries/orders.sql"] == b"select * from orders"

    def test_directories_are_marked(self, source_tree: Path) -> None:
        archive = Archiver().build(source_tree)
        dirs = [e.path for e in archive if e.is_dir]

        assert dirs == ["models", "queries", "queries/nested"]

    def test_empty_folder_is_kept(self, tmp_path: Path) -> None:
        (tmp_path / "src" / "empty").mkdir(parents=True)

        archive = Archiver().build(tmp_path / "src")

        assert archive.paths() == ["empty"]
        assert next(iter(archive)).is_dir

    def test_extra_files_come_first(self, source_tree: Path) -> None:
        config = ArchiveEntry.file("tinyqueries.yaml", b"project: {}")

        archive = Archiver().build(source_tree, extra_files=[config])

        assert archive.paths()[0] == "tinyqueries.yaml"
        assert archive.paths().count("tinyqueries.yaml") == 1

    def test_custom_exclusions(self, source_tree: Path) -> None:
        archive = Archiver(excluded_names=["models"]).build(source_tree)

        assert not any(p.startswith("models") for p in archive.paths())
        assert "queries/tinyqueries.json" in archive.paths()

    def test_is_file_to_upload(self) -> None:
        archiver = Archiver()

        assert archiver.is_file_to_upload("orders.sql")
        assert not archiver.is_file_to_upload("tinyqueries.json")
        assert not archiver.is_file_to_upload(".")
        assert not archiver.is_file_to_upload("..")

    def test_unlistable_folder_raises(self, tmp_path: Path) -> None:
        not_a_folder = tmp_path / "file.txt"
        not_a_folder.write_text("x")

        with pytest.raises(DirectoryUnreadableError) as exc_info:
            Archiver().build(not_a_folder)
        assert exc_info.value.path == str(not_a_folder)


class TestArchiveSerialization:
    """Tests for Archive.to_bytes() and Archive.write()."""

    def test_zip_contains_all_entries(self, source_tree: Path) -> None:
        archive = Archiver().build(source_tree)

        with zipfile.ZipFile(io.BytesIO(archive.to_bytes())) as zf:
            names = zf.namelist()
            assert zf.read("queries/nested/deep.sql") == b"select 1"

        assert "queries/" in names
        assert "queries/nested/" in names
        assert "queries/orders.sql" in names
        assert len(names) == len(archive)

    def test_same_tree_gives_same_bytes(self, source_tree: Path) -> None:
        first = Archiver().build(source_tree).to_bytes()
        (source_tree / "a.json").touch()
        second = Archiver().build(source_tree).to_bytes()

        assert first == second

    def test_fixed_timestamp(self) -> None:
        archive = Archive((ArchiveEntry.file("a.sql", b"select 1"),))

        with zipfile.ZipFile(io.BytesIO(archive.to_bytes())) as zf:
            assert zf.getinfo("a.sql").date_time == ZIP_EPOCH

    def test_write_to_file(self, tmp_path: Path) -> None:
        archive = Archive((ArchiveEntry.directory("q"), ArchiveEntry.file("q/a.sql", b"1")))
        path = archive.write(tmp_path / "upload.zip")

        assert path.read_bytes() == archive.to_bytes()
        with zipfile.ZipFile(path) as zf:
            assert zf.testzip() is None
