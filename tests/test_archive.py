from __future__ import annotations

import errno
import io
import shutil
import tarfile
import tempfile
from pathlib import Path

import pytest

from core import archive
from core.archive import build_archive, extract_archive, make_staging_dir, replace_directory


def _populate(root: Path) -> None:
    (root / "memories" / "proj").mkdir(parents=True)
    (root / "serena_config.yml").write_text("projects: []\n")
    (root / "memories" / "proj" / "notes.md").write_text("# notes\n")


def test_archive_restores_the_same_tree(tmp_path: Path):
    src = tmp_path / "src"
    src.mkdir()
    _populate(src)

    dest = tmp_path / "dest"
    dest.mkdir()
    extract_archive(build_archive(src), dest)

    assert (dest / "serena_config.yml").read_text() == "projects: []\n"
    assert (dest / "memories" / "proj" / "notes.md").read_text() == "# notes\n"


def test_archive_members_are_relative(tmp_path: Path):
    src = tmp_path / "src"
    src.mkdir()
    _populate(src)
    with tarfile.open(fileobj=io.BytesIO(build_archive(src)), mode="r:gz") as tar:
        names = tar.getnames()
    assert "./serena_config.yml" in names
    assert not any(n.startswith("/") for n in names)


def test_extract_rejects_path_escape(tmp_path: Path):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        data = b"owned"
        info = tarfile.TarInfo("../escape.txt")
        info.size = len(data)
        tar.addfile(info, io.BytesIO(data))

    dest = tmp_path / "dest"
    dest.mkdir()
    with pytest.raises(tarfile.TarError):
        extract_archive(buf.getvalue(), dest)
    assert not (tmp_path / "escape.txt").exists()


def test_extract_rejects_garbage(tmp_path: Path):
    with pytest.raises((tarfile.TarError, OSError, EOFError)):
        extract_archive(b"definitely not gzip", tmp_path)


def test_replace_directory_swaps_whole_tree(tmp_path: Path):
    target = tmp_path / "home"
    target.mkdir()
    (target / "stale.txt").write_text("old")

    staging = make_staging_dir(target)
    assert staging.parent == target.parent
    (staging / "fresh.txt").write_text("new")

    replace_directory(staging, target)
    assert (target / "fresh.txt").read_text() == "new"
    assert not (target / "stale.txt").exists()
    assert not staging.exists()
    # no leftover backups beside the target
    assert sorted(p.name for p in tmp_path.iterdir()) == ["home"]


def test_replace_directory_creates_missing_target(tmp_path: Path):
    target = tmp_path / "nested" / "home"
    staging = make_staging_dir(target)
    (staging / "a").write_text("1")
    replace_directory(staging, target)
    assert (target / "a").read_text() == "1"


def _refuse_rename(monkeypatch) -> None:
    def busy(src, dst):
        raise OSError(errno.EBUSY, "Device or resource busy", str(src))

    monkeypatch.setattr(archive.os, "replace", busy)


def test_replace_directory_swaps_contents_when_rename_is_refused(tmp_path: Path, monkeypatch):
    target = tmp_path / "home"
    (target / "old-dir").mkdir(parents=True)
    (target / "stale.txt").write_text("old")
    staging = make_staging_dir(target)
    (staging / "memories").mkdir()
    (staging / "memories" / "a.md").write_text("new")

    _refuse_rename(monkeypatch)
    replace_directory(staging, target)

    assert sorted(p.name for p in target.iterdir()) == ["memories"]
    assert (target / "memories" / "a.md").read_text() == "new"
    assert not staging.exists()
    assert sorted(p.name for p in tmp_path.iterdir()) == ["home"]


def test_staging_falls_back_to_temp_dir(tmp_path: Path, monkeypatch):
    real_mkdtemp = tempfile.mkdtemp

    def no_sibling(*args, **kwargs):
        if kwargs.get("dir"):
            raise PermissionError(errno.EACCES, "Permission denied")
        return real_mkdtemp(*args, **kwargs)

    monkeypatch.setattr(archive.tempfile, "mkdtemp", no_sibling)
    target = tmp_path / "home"
    staging = make_staging_dir(target)
    try:
        assert staging.parent != target.parent
        (staging / "a").write_text("1")
        replace_directory(staging, target)
        assert (target / "a").read_text() == "1"
    finally:
        shutil.rmtree(staging, ignore_errors=True)
