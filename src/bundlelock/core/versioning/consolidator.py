"""VersionConsolidator --- one entry per bundle identity, newest version first.

When a source publishes every release as its own listing
(``acme-tool-v1.0.0``, ``acme-tool-v2.0.0``), the consolidator groups the
listings by identity, selects the newest as canonical, and caches the full
ordered version list so a specific release can be installed later.

Source type resolution, in order:

1. ``BundleListing.source_type`` when the listing carries it.
2. The ``source_type_resolver`` callable (sourceId -> type), when supplied.
3. A substring heuristic on the sourceId. Unrecognized ids are treated as
   ``local``, which yields an exact-match (non-consolidating) identity.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Callable

from bundlelock.config import DEFAULT_MAX_CACHE_SIZE, Settings
from bundlelock.core.versioning.cache import LRUVersionCache
from bundlelock.core.versioning.models import BundleListing, BundleVersion, ConsolidatedBundle
from bundlelock.core.versioning.semver import compare_versions, extract_bundle_identity
from bundlelock.exceptions import VersionError

logger = logging.getLogger(__name__)

SourceTypeResolver = Callable[[str], str]

# Checked in order; first substring found in the sourceId wins.
_HEURISTIC_SOURCE_TYPES: tuple[tuple[str, str], ...] = (
    ("github", "github"),
    ("gitlab", "gitlab"),
    ("http", "http"),
    ("awesome", "awesome-copilot"),
    ("local", "local"),
)


def infer_source_type(source_id: str) -> str:
    """Guess a source type from substrings of ``source_id``."""
    for needle, source_type in _HEURISTIC_SOURCE_TYPES:
        if needle in source_id:
            return source_type
    logger.debug(
        "Could not infer source type from %r, treating as non-consolidatable", source_id
    )
    return "local"


def _parse_timestamp(value: str) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class VersionConsolidator:
    """Groups bundle listings by identity and caches their versions.

    Args:
        max_cache_size: Maximum number of identities kept in the version
            cache. Must be a positive integer.
        source_type_resolver: Optional sourceId -> source type mapping.

    Raises:
        CacheConfigurationError: If ``max_cache_size`` is invalid.
    """

    def __init__(
        self,
        max_cache_size: int = DEFAULT_MAX_CACHE_SIZE,
        source_type_resolver: SourceTypeResolver | None = None,
    ) -> None:
        self._cache = LRUVersionCache(max_cache_size)
        self._source_type_resolver = source_type_resolver

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    @property
    def cached_identities(self) -> list[str]:
        """Cached identities, least recently used first."""
        return self._cache.keys()

    def set_source_type_resolver(self, resolver: SourceTypeResolver | None) -> None:
        self._source_type_resolver = resolver

    # -- Identity -----------------------------------------------------------

    def source_type_of(self, listing: BundleListing) -> str:
        if listing.source_type:
            return listing.source_type
        if self._source_type_resolver is not None:
            return self._source_type_resolver(listing.source_id)
        return infer_source_type(listing.source_id)

    def identity_of(self, listing: BundleListing) -> str:
        return extract_bundle_identity(listing.id, self.source_type_of(listing))

    # -- Consolidation ------------------------------------------------------

    def consolidate_bundles(self, bundles: list[BundleListing]) -> list[ConsolidatedBundle]:
        """Collapse listings into one ``ConsolidatedBundle`` per identity.

        Output order follows the first appearance of each identity in
        ``bundles``. Every identity's versions are cached.
        """
        logger.debug("Consolidating %d bundles", len(bundles))

        grouped: dict[str, list[BundleListing]] = {}
        for listing in bundles:
            grouped.setdefault(self.identity_of(listing), []).append(listing)

        logger.debug("Grouped into %d unique identities", len(grouped))

        consolidated: list[ConsolidatedBundle] = []
        for identity, members in grouped.items():
            if len(members) == 1:
                version = BundleVersion.from_listing(members[0])
                self._cache.put(identity, [version])
                consolidated.append(ConsolidatedBundle(
                    bundle=members[0],
                    identity=identity,
                    available_versions=[version],
                    is_consolidated=False,
                ))
                continue

            ordered = self.sort_by_version(members)
            versions = [BundleVersion.from_listing(b) for b in ordered]
            self._cache.put(identity, versions)
            logger.debug(
                "Consolidated %d versions for %r, latest: %s",
                len(ordered), identity, ordered[0].version,
            )
            consolidated.append(ConsolidatedBundle(
                bundle=ordered[0],
                identity=identity,
                available_versions=versions,
                is_consolidated=True,
            ))

        return consolidated

    def sort_by_version(self, bundles: list[BundleListing]) -> list[BundleListing]:
        """Order listings newest first.

        Pairs whose versions cannot be compared fall back to ``last_updated``
        (newest first). If that fails too the pair keeps its input order.
        The sort is stable, so the result is deterministic.
        """

        def _compare(a: BundleListing, b: BundleListing) -> int:
            try:
                return compare_versions(b.version, a.version)
            except VersionError as exc:
                logger.warning(
                    "Version comparison failed for %s and %s: %s. Using dates",
                    a.id, b.id, exc,
                )
            date_a = _parse_timestamp(a.last_updated)
            date_b = _parse_timestamp(b.last_updated)
            if date_a is None or date_b is None:
                logger.error(
                    "Both version and date comparison failed for %s, %s. Preserving order.",
                    b.id, a.id,
                )
                return 0
            return (date_b > date_a) - (date_b < date_a)

        return sorted(bundles, key=cmp_to_key(_compare))

    # -- Cache access -------------------------------------------------------

    def get_all_versions(self, identity: str) -> list[BundleVersion]:
        """All cached versions of ``identity``, newest first (empty if unknown)."""
        versions = self._cache.get(identity)
        return list(versions) if versions is not None else []

    def get_bundle_version(self, identity: str, version: str) -> BundleVersion | None:
        versions = self._cache.get(identity)
        if versions is None:
            return None
        return next((v for v in versions if v.version == version), None)

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.debug("Version cache cleared")


def build_consolidator(
    settings: Settings, source_type_resolver: SourceTypeResolver | None = None
) -> VersionConsolidator:
    """Consolidator whose version cache is bounded by ``settings.max_cache_size``."""
    return VersionConsolidator(
        max_cache_size=settings.max_cache_size,
        source_type_resolver=source_type_resolver,
    )
