"""
Data types shared across the mirror.

Upstream* models parse the origin registry API; Mirror* models render the
provider network mirror protocol documents.
"""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class PackageKey:
    """Identity of one provider archive: namespace/name/version/platform."""

    namespace: str
    name: str
    version: str
    platform: str

    @classmethod
    def for_platform(
        cls, namespace: str, name: str, version: str, os_: str, arch: str
    ) -> "PackageKey":
        return cls(namespace, name, version, platform_string(os_, arch))

    @property
    def provider(self) -> str:
        return f"{self.namespace}/{self.name}"


def platform_string(os_: str, arch: str) -> str:
    """Join an OS and architecture the way the mirror protocol keys platforms."""
    return f"{os_}_{arch}"


# --- Origin registry API ---


class UpstreamPlatform(BaseModel):
    model_config = ConfigDict(extra="ignore")

    os: str
    arch: str


class UpstreamVersion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: str
    platforms: list[UpstreamPlatform] = Field(default_factory=list)


class UpstreamVersionList(BaseModel):
    """Response of GET /v1/providers/{namespace}/{type}/versions."""

    model_config = ConfigDict(extra="ignore")

    versions: list[UpstreamVersion] = Field(default_factory=list)


class UpstreamDownload(BaseModel):
    """Response of GET /v1/providers/{namespace}/{type}/{version}/download/{os}/{arch}."""

    model_config = ConfigDict(extra="ignore")

    download_url: str
    filename: str = ""
    shasum: str = ""


# --- Network mirror protocol ---


class MirrorIndex(BaseModel):
    """index.json — the set of available versions."""

    versions: dict[str, dict] = Field(default_factory=dict)


class MirrorArchive(BaseModel):
    url: str
    hashes: list[str] | None = None


class MirrorVersion(BaseModel):
    """{version}.json — one archive per platform."""

    archives: dict[str, MirrorArchive] = Field(default_factory=dict)

    def to_document(self) -> dict:
        """Serialize, leaving out ``hashes`` for archives with no known hash."""
        return self.model_dump(exclude_none=True)
