"""
Delivery of the generated catalog documents to the printer.
"""

from __future__ import annotations

import logging
import shlex
from datetime import datetime
from pathlib import Path

from .config import DATABASE_FILE, OPTIONS_FILE
from .remote import RemoteError, RemoteTransport

logger = logging.getLogger(__name__)

UPLOAD_FILES = (DATABASE_FILE, OPTIONS_FILE)


class UploadError(Exception):
    """Raised when the local documents to upload are missing."""


def backup_stamp(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime("%Y%m%d_%H%M%S")


async def backup_remote_files(
    remote: RemoteTransport,
    remote_dir: str,
    filenames: tuple[str, ...],
    backup_root: Path,
    stamp: str | None = None,
) -> Path:
    """Copy the printer's current files into ``backup_root/<stamp>/``.

    A remote file that can't be read (usually: not created yet) is skipped.
    """
    out_dir = backup_root / (stamp or backup_stamp())
    out_dir.mkdir(parents=True, exist_ok=True)

    for name in filenames:
        remote_path = f"{remote_dir}/{name}"
        try:
            content = await remote.read_file(remote_path)
        except RemoteError as e:
            logger.debug("backup: skip %s (%s)", remote_path, str(e).split("\n")[0])
            continue
        local_path = out_dir / name
        local_path.write_bytes(content)
        logger.debug("backup: saved %s -> %s", remote_path, local_path)
    return out_dir


async def upload_files(
    remote: RemoteTransport,
    data_dir: Path,
    remote_dir: str,
    backup_root: Path | None = None,
    filenames: tuple[str, ...] = UPLOAD_FILES,
) -> tuple[list[str], Path | None]:
    """
    Upload the generated documents from ``data_dir`` into ``remote_dir``.

    Each file is written atomically.  When ``backup_root`` is set, the current
    remote copies are saved there first.

    Returns:
        ``(uploaded remote paths, backup directory or None)``.

    Raises:
        UploadError: A local document is missing.
        RemoteError: A remote command or write failed.
    """
    local_files = [data_dir / name for name in filenames]
    for path in local_files:
        if not path.is_file():
            raise UploadError(f"Local file missing: {path}\nRun the build step first.")

    logger.debug("exec: mkdir -p %s", remote_dir)
    res = await remote.exec(f"mkdir -p {shlex.quote(remote_dir)}")
    if res.exit_status != 0:
        raise RemoteError(f"Cannot create remote directory {remote_dir}: {res.message()}")

    backup_dir = None
    if backup_root is not None:
        backup_dir = await backup_remote_files(remote, remote_dir, filenames, backup_root)

    uploaded: list[str] = []
    for path in local_files:
        remote_path = f"{remote_dir}/{path.name}"
        data = path.read_bytes()
        logger.debug("Uploading %s (%d bytes) -> %s", path.name, len(data), remote_path)
        await remote.write_file_atomic(remote_path, data)

        verify = await remote.exec(f"ls -l {shlex.quote(remote_path)} || true")
        logger.debug("verify: %s", (verify.stdout or verify.stderr).decode("utf-8", "replace").strip())
        uploaded.append(remote_path)

    logger.debug("Upload complete.")
    return uploaded, backup_dir
