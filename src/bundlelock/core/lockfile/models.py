"""Lockfile data models --- bundle, source, hub, and profile entries.

Defines the data structures of the ``prompt-registry.lock.json`` format.
These are pure data holders (dataclasses) with dict conversion helpers and
no I/O, making them safe to import without circular-dependency concerns.

On-disk keys are camelCase; Python attributes are snake_case. Each model's
``to_dict`` emits exactly the on-disk shape and ``from_dict`` reads it back.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

LOCKFILE_SCHEMA_VERSION = "1.0.0"
LOCKFILE_SCHEMA_URL = (
    "https://github.com/AmadeusITGroup/prompt-registry/schemas/lockfile.schema.json"
)

CommitMode = Literal["commit", "local-only"]
COMMIT_MODES: tuple[str, ...] = ("commit", "local-only")

ModificationType = Literal["modified", "missing", "new"]


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileEntry:
    """A single installed file, relative to the repository root.

    Attributes:
        path: Relative path (POSIX separators).
        checksum: SHA-256 hex digest of the content at install/update time.
    """

    path: str
    checksum: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "checksum": self.checksum}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileEntry:
        return cls(path=data.get("path", ""), checksum=data.get("checksum", ""))


@dataclass(frozen=True)
class SourceEntry:
    """Where bundles come from.

    Attributes:
        type: Source type (``github``, ``gitlab``, ``http``, ``local``, ...).
        url: Source URL.
        branch: Optional Git branch for git-based sources.
    """

    type: str
    url: str
    branch: str | None = None

    def to_dict(self) -> dict[str, str]:
        out = {"type": self.type, "url": self.url}
        if self.branch:
            out["branch"] = self.branch
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SourceEntry:
        return cls(
            type=data.get("type", ""),
            url=data.get("url", ""),
            branch=data.get("branch"),
        )


@dataclass(frozen=True)
class HubEntry:
    """A hub the bundles were discovered through."""

    name: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "url": self.url}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HubEntry:
        return cls(name=data.get("name", ""), url=data.get("url", ""))


@dataclass(frozen=True)
class ProfileEntry:
    """A named group of bundle ids activated together."""

    name: str
    bundle_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "bundleIds": list(self.bundle_ids)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProfileEntry:
        return cls(
            name=data.get("name", ""),
            bundle_ids=tuple(data.get("bundleIds", [])),
        )


@dataclass
class BundleEntry:
    """One installed bundle at repository scope.

    Created on install, replaced wholesale on update, deleted on uninstall.

    Attributes:
        version: Installed semantic version.
        source_id: Id of the source the bundle came from.
        source_type: Type of that source.
        installed_at: ISO-8601 install timestamp.
        commit_mode: ``commit`` (files tracked in Git) or ``local-only``.
        files: Installed files in install order.
        checksum: Optional checksum of the bundle archive.
    """

    version: str
    source_id: str
    source_type: str
    installed_at: str
    commit_mode: CommitMode
    files: list[FileEntry] = field(default_factory=list)
    checksum: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "version": self.version,
            "sourceId": self.source_id,
            "sourceType": self.source_type,
            "installedAt": self.installed_at,
            "commitMode": self.commit_mode,
        }
        if self.checksum:
            out["checksum"] = self.checksum
        out["files"] = [f.to_dict() for f in self.files]
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BundleEntry:
        return cls(
            version=data.get("version", ""),
            source_id=data.get("sourceId", ""),
            source_type=data.get("sourceType", ""),
            installed_at=data.get("installedAt", ""),
            commit_mode=data.get("commitMode", "commit"),
            files=[FileEntry.from_dict(f) for f in data.get("files", [])],
            checksum=data.get("checksum"),
        )


# ---------------------------------------------------------------------------
# Lockfile root
# ---------------------------------------------------------------------------


@dataclass
class Lockfile:
    """Root lockfile record.

    Owned by ``LockfileRepository``; callers receive copies parsed from disk
    and mutate the file only through the repository API.
    """

    generated_by: str
    generated_at: str = field(default_factory=utc_now_iso)
    schema: str = LOCKFILE_SCHEMA_URL
    version: str = LOCKFILE_SCHEMA_VERSION
    bundles: dict[str, BundleEntry] = field(default_factory=dict)
    sources: dict[str, SourceEntry] = field(default_factory=dict)
    hubs: dict[str, HubEntry] | None = None
    profiles: dict[str, ProfileEntry] | None = None

    @classmethod
    def empty(cls, generated_by: str) -> Lockfile:
        return cls(generated_by=generated_by)

    def touch(self) -> None:
        """Refresh the generation timestamp."""
        self.generated_at = utc_now_iso()

    def is_source_referenced(self, source_id: str) -> bool:
        return any(b.source_id == source_id for b in self.bundles.values())

    def drop_source_if_orphaned(self, source_id: str) -> bool:
        """Remove ``source_id`` when no bundle references it.

        Returns:
            True if the source entry was removed.
        """
        if source_id in self.sources and not self.is_source_referenced(source_id):
            del self.sources[source_id]
            return True
        return False

    def orphaned_sources(self) -> list[str]:
        return sorted(s for s in self.sources if not self.is_source_referenced(s))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "$schema": self.schema,
            "version": self.version,
            "generatedAt": self.generated_at,
            "generatedBy": self.generated_by,
            "bundles": {k: v.to_dict() for k, v in self.bundles.items()},
            "sources": {k: v.to_dict() for k, v in self.sources.items()},
        }
        if self.hubs is not None:
            out["hubs"] = {k: v.to_dict() for k, v in self.hubs.items()}
        if self.profiles is not None:
            out["profiles"] = {k: v.to_dict() for k, v in self.profiles.items()}
        return out

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent) + "\n"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Lockfile:
        """Build a lockfile from parsed JSON.

        Raises:
            ValueError: If ``data`` or its ``bundles``/``sources`` sections
                are not JSON objects.
        """
        if not isinstance(data, dict):
            raise ValueError("Lockfile root must be a JSON object")
        bundles = data.get("bundles", {})
        sources = data.get("sources", {})
        if not isinstance(bundles, dict) or not isinstance(sources, dict):
            raise ValueError("Lockfile 'bundles' and 'sources' must be JSON objects")

        for section in (bundles, sources):
            for key, value in section.items():
                if not isinstance(value, dict):
                    raise ValueError(f"Lockfile entry {key!r} must be a JSON object")

        hubs = data.get("hubs")
        profiles = data.get("profiles")
        return cls(
            schema=data.get("$schema", LOCKFILE_SCHEMA_URL),
            version=data.get("version", LOCKFILE_SCHEMA_VERSION),
            generated_at=data.get("generatedAt", ""),
            generated_by=data.get("generatedBy", ""),
            bundles={k: BundleEntry.from_dict(v) for k, v in bundles.items()},
            sources={k: SourceEntry.from_dict(v) for k, v in sources.items()},
            hubs=(
                {k: HubEntry.from_dict(v) for k, v in hubs.items()}
                if isinstance(hubs, dict) else None
            ),
            profiles=(
                {k: ProfileEntry.from_dict(v) for k, v in profiles.items()}
                if isinstance(profiles, dict) else None
            ),
        )

    @classmethod
    def from_json(cls, text: str) -> Lockfile:
        """Parse lockfile JSON.

        Raises:
            json.JSONDecodeError: If ``text`` is not valid JSON.
            ValueError: If the JSON does not have the lockfile shape.
        """
        return cls.from_dict(json.loads(text))


# ---------------------------------------------------------------------------
# Operation inputs and results
# ---------------------------------------------------------------------------


@dataclass
class CreateOrUpdateOptions:
    """Input to ``LockfileRepository.create_or_update``.

    ``files`` accepts ``FileEntry`` objects or ``{"path", "checksum"}``
    mappings; ``source`` accepts a ``SourceEntry`` or a mapping. Both are
    validated before any I/O.
    """

    bundle_id: str
    version: str
    source_id: str
    source_type: str
    commit_mode: str
    files: Any
    source: Any
    hub: tuple[str, HubEntry] | None = None
    profile: tuple[str, ProfileEntry] | None = None
    checksum: str | None = None


@dataclass(frozen=True)
class ModifiedFileInfo:
    """A tracked file whose on-disk state diverges from the lockfile."""

    path: str
    original_checksum: str
    current_checksum: str
    modification_type: ModificationType

    def to_dict(self) -> dict[str, str]:
        return {
            "path": self.path,
            "originalChecksum": self.original_checksum,
            "currentChecksum": self.current_checksum,
            "modificationType": self.modification_type,
        }


@dataclass
class LockfileValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    schema_version: str | None = None
