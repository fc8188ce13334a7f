"""Bundle listing and version data models."""

from __future__ import annotations

from dataclasses import dataclass, field

SOURCE_TYPES: tuple[str, ...] = ("github", "gitlab", "http", "awesome-copilot", "local")


@dataclass(frozen=True)
class BundleListing:
    """A published bundle as reported by one source.

    Several listings may be different releases of the same logical bundle
    (``acme-tool-v1.0.0`` and ``acme-tool-v2.0.0``).

    Attributes:
        id: Listing id; for GitHub sources it ends in the release version.
        name: Display name.
        version: Release version string.
        source_id: Id of the source that published the listing.
        last_updated: ISO-8601 publication time, used when versions cannot
            be ordered.
        download_url: Archive URL.
        manifest_url: Manifest URL.
        source_type: Source type when the caller knows it. Takes precedence
            over any resolver or heuristic.
        description: Short description.
    """

    id: str
    name: str
    version: str
    source_id: str
    last_updated: str = ""
    download_url: str = ""
    manifest_url: str = ""
    source_type: str | None = None
    description: str = ""


@dataclass(frozen=True)
class BundleVersion:
    """One known release of a bundle identity."""

    version: str
    bundle_id: str
    published_at: str = ""
    download_url: str = ""
    manifest_url: str = ""
    release_notes: str | None = None

    @classmethod
    def from_listing(cls, listing: BundleListing) -> BundleVersion:
        return cls(
            version=listing.version,
            bundle_id=listing.id,
            published_at=listing.last_updated,
            download_url=listing.download_url,
            manifest_url=listing.manifest_url,
        )


@dataclass(frozen=True)
class ConsolidatedBundle:
    """The canonical (latest) listing of an identity plus all its versions.

    Attributes:
        bundle: The latest listing.
        identity: Version-independent key shared by all versions.
        available_versions: Every known version, newest first.
        is_consolidated: True when more than one version was grouped.
    """

    bundle: BundleListing
    identity: str
    available_versions: list[BundleVersion] = field(default_factory=list)
    is_consolidated: bool = False

    @property
    def id(self) -> str:
        return self.bundle.id

    @property
    def version(self) -> str:
        return self.bundle.version

    @property
    def source_id(self) -> str:
        return self.bundle.source_id

    @property
    def version_strings(self) -> list[str]:
        return [v.version for v in self.available_versions]
