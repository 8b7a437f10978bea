"""Filesystem helpers shared by the image store and the NFO writer."""

import contextlib
import os
import tempfile
from pathlib import Path


def write_file_atomic(path: str | Path, data: bytes | str, mode: int = 0o644) -> None:
    """Write data to path via a temp file in the same directory and os.replace().

    Readers (media servers scanning the library) never see a half-written file.
    """
    target = Path(path)
    payload = data.encode("utf-8") if isinstance(data, str) else data

    with tempfile.NamedTemporaryFile(
        dir=target.parent, prefix=f".{target.name}.", suffix=".tmp", delete=False
    ) as tmp:
        tmp_path = tmp.name
        tmp.write(payload)
        tmp.flush()
        os.fsync(tmp.fileno())

    try:
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, target)
    except OSError:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def list_files_case_insensitive(directory: str | Path) -> dict[str, str]:
    """Map lowercased filename -> actual filename for regular files in directory.

    Raises:
        OSError: If the directory cannot be read
    """
    return {
        entry.name.lower(): entry.name
        for entry in os.scandir(directory)
        if entry.is_file(follow_symlinks=True)
    }
