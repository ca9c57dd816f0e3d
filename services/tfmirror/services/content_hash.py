"""h1 content hashes for provider archives.

Implements the "h1" scheme Terraform records in dependency lock files, which
is Go's ``golang.org/x/mod/sumdb/dirhash`` Hash1 applied to a zip:

    for each entry name, sorted:
        line = hex(sha256(entry contents)) + "  " + name + "\\n"
    h1 = "h1:" + base64(sha256(all lines))

The hash depends only on entry names and contents, so archives that differ
in entry order or timestamps hash the same.
"""

import asyncio
import base64
import hashlib
import zipfile
from collections.abc import Callable, Iterable
from os import PathLike
from typing import BinaryIO

from tfmirror.errors import HashComputationError

H1_PREFIX = "h1:"
_READ_CHUNK = 64 * 1024


def hash1(files: Iterable[str], open_file: Callable[[str], BinaryIO]) -> str:
    """Compute an h1 hash over named files supplied by ``open_file``."""
    summary = hashlib.sha256()
    # Go sorts by byte order; for str this matches UTF-8 byte order.
    for name in sorted(files):
        if "\n" in name:
            raise HashComputationError("Filenames with newlines are not supported")
        file_hash = hashlib.sha256()
        with open_file(name) as f:
            while chunk := f.read(_READ_CHUNK):
                file_hash.update(chunk)
        summary.update(f"{file_hash.hexdigest()}  {name}\n".encode())
    return H1_PREFIX + base64.b64encode(summary.digest()).decode("ascii")


def compute_h1(path: str | PathLike[str]) -> str:
    """Compute the h1 hash of a zip archive on disk.

    Raises:
        HashComputationError: If the file is missing, unreadable or not a
            valid zip archive.
    """
    try:
        with zipfile.ZipFile(path) as archive:
            names = [info.filename for info in archive.infolist()]
            # Duplicate names resolve to the last entry, as Go's reader does.
            entries = {info.filename: info for info in archive.infolist()}
            return hash1(names, lambda name: archive.open(entries[name]))
    except HashComputationError:
        raise
    except (
        OSError,
        EOFError,
        ValueError,
        RuntimeError,
        zipfile.BadZipFile,
        zipfile.LargeZipFile,
    ) as e:
        raise HashComputationError(f"Cannot hash archive {path}: {e}") from e


async def compute_h1_async(path: str | PathLike[str]) -> str:
    """Run compute_h1 in a worker thread so the event loop keeps serving."""
    return await asyncio.to_thread(compute_h1, path)
