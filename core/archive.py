# core/archive.py
import io
import os
import shutil
import tarfile
import tempfile
from pathlib import Path
from uuid import uuid4
from util.timing import timed
import logging

logger = logging.getLogger(__name__)


def build_archive(source: Path) -> bytes:
    """
    gzip'd tar of the *contents* of `source` (member names are relative, rooted at ".").

    Not a point-in-time capture: files written while the walk runs may be picked
    up half-written.
    """
    buf = io.BytesIO()
    with timed(logger, "archive.build", src=source.name):
        with tarfile.open(fileobj=buf, mode="w:gz") as tar:
            tar.add(str(source), arcname=".")
    return buf.getvalue()


def extract_archive(data: bytes, dest: Path) -> None:
    """
    Extract a snapshot archive into `dest`.
    The "data" filter rejects absolute paths, '..' escapes, links leaving `dest`
    and device files.
    """
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
        tar.extractall(str(dest), filter="data")


def make_staging_dir(target: Path) -> Path:
    # Beside the target so the final swap is a same-filesystem rename.
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=f".{target.name}.restore-", dir=str(target.parent)))
    except OSError as e:
        logger.warning("archive.staging_fallback target=%s err=%s", target, e)
        return Path(tempfile.mkdtemp(prefix=f"{target.name}.restore-"))


def _swap_directory(staging: Path, target: Path) -> None:
    backup = None
    if target.exists():
        backup = target.with_name(f".{target.name}.previous-{uuid4().hex[:8]}")
        os.replace(target, backup)
    try:
        os.replace(staging, target)
    except OSError:
        if backup is not None:
            os.replace(backup, target)
        raise
    if backup is not None:
        shutil.rmtree(backup, ignore_errors=True)


def _replace_contents(staging: Path, target: Path) -> None:
    for entry in list(target.iterdir()):
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
    for entry in list(staging.iterdir()):
        shutil.move(str(entry), str(target / entry.name))
    shutil.rmtree(staging, ignore_errors=True)


def replace_directory(staging: Path, target: Path) -> None:
    """
    Move `staging` into place as `target`.

    Normally the previous directory is renamed aside and put back if the second
    rename fails, so `target` is never left half-populated.

    When `target` itself cannot be renamed (a mount point, an unwritable parent,
    or staging on another filesystem) the contents are swapped entry by entry
    instead. That path is not atomic: a crash midway leaves a partial tree.
    """
    try:
        _swap_directory(staging, target)
    except OSError as e:
        if not staging.is_dir():
            raise
        logger.warning("archive.swap_fallback target=%s err=%s", target, e)
        target.mkdir(parents=True, exist_ok=True)
        _replace_contents(staging, target)
