"""
Key path helpers for the hash store.

The on-disk layout is shared with existing mirror caches and must not change:

    hashes/{namespace}/{name}/{version}_{platform}.h1
"""

HASHES_ROOT = "hashes"
RECORD_SUFFIX = ".h1"


def hash_record_dir(namespace: str, name: str) -> str:
    """Directory holding every hash record for one provider."""
    return f"{HASHES_ROOT}/{namespace}/{name}"


def hash_record_filename(version: str, platform: str) -> str:
    """Filename of the record for one version/platform."""
    return f"{version}_{platform}{RECORD_SUFFIX}"


def hash_record_key(namespace: str, name: str, version: str, platform: str) -> str:
    """Key for the h1 hash of one provider archive."""
    return f"{hash_record_dir(namespace, name)}/{hash_record_filename(version, platform)}"


def platform_from_record(filename: str, version: str) -> str | None:
    """Extract the platform from a record filename if it belongs to ``version``."""
    prefix = f"{version}_"
    if not filename.startswith(prefix) or not filename.endswith(RECORD_SUFFIX):
        return None
    platform = filename[len(prefix) : -len(RECORD_SUFFIX)]
    return platform or None
