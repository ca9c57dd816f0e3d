"""Synthetic provider archive filenames.

Archives are addressed in mirror URLs as
``terraform-provider-{name}_{version}_{os}_{arch}.zip``. Provider names may
themselves contain underscores, so decoding reads the version, OS and
architecture from the right and gives everything left over to the name.
"""

from typing import NamedTuple

from tfmirror.errors import MalformedInput
from tfmirror.models import platform_string

ARCHIVE_PREFIX = "terraform-provider-"
ARCHIVE_SUFFIX = ".zip"
SEPARATOR = "_"


class ArchiveName(NamedTuple):
    name: str
    version: str
    os: str
    arch: str

    @property
    def platform(self) -> str:
        return platform_string(self.os, self.arch)

    @property
    def filename(self) -> str:
        return encode_archive_name(self.name, self.version, self.os, self.arch)


def encode_archive_name(name: str, version: str, os_: str, arch: str) -> str:
    """Build the archive filename advertised in {version}.json."""
    return f"{ARCHIVE_PREFIX}{name}_{version}_{os_}_{arch}{ARCHIVE_SUFFIX}"


def decode_archive_name(filename: str) -> ArchiveName:
    """Recover name, version, OS and architecture from an archive filename.

    Raises:
        MalformedInput: If the prefix or suffix is missing, or fewer than
            four underscore-separated segments remain.
    """
    if not filename.endswith(ARCHIVE_SUFFIX):
        raise MalformedInput(f"Invalid filename format: {filename} (expected .zip)")
    stem = filename[: -len(ARCHIVE_SUFFIX)]

    if not stem.startswith(ARCHIVE_PREFIX):
        raise MalformedInput(
            f"Invalid filename format: {filename} (expected {ARCHIVE_PREFIX} prefix)"
        )
    stem = stem[len(ARCHIVE_PREFIX) :]

    parts = stem.split(SEPARATOR)
    if len(parts) < 4:
        raise MalformedInput(f"Invalid filename format: {filename} (not enough parts)")

    name = SEPARATOR.join(parts[:-3])
    version, os_, arch = parts[-3:]
    if not all((name, version, os_, arch)):
        raise MalformedInput(f"Invalid filename format: {filename} (empty segment)")

    return ArchiveName(name=name, version=version, os=os_, arch=arch)
