"""Bundle versioning --- SemVer ordering, identities, and consolidation.

- ``semver``: version cleaning, coercion, comparison, and GitHub bundle
  identity extraction.
- ``models``: ``BundleListing``, ``BundleVersion``, ``ConsolidatedBundle``.
- ``cache``: ``LRUVersionCache``, the bounded identity -> versions cache.
- ``consolidator``: ``VersionConsolidator``.
"""

from bundlelock.core.versioning.cache import CacheEntry, LRUVersionCache, validate_capacity
from bundlelock.core.versioning.consolidator import (
    SourceTypeResolver,
    VersionConsolidator,
    build_consolidator,
    infer_source_type,
)
from bundlelock.core.versioning.models import (
    SOURCE_TYPES,
    BundleListing,
    BundleVersion,
    ConsolidatedBundle,
)
from bundlelock.core.versioning.semver import (
    compare_versions,
    extract_base_id,
    extract_bundle_identity,
    has_version_suffix,
    is_same_bundle_identity,
    is_update_available,
    is_valid_semver,
    matches,
    parse_version,
    sort_versions_descending,
)

__all__ = [
    "SOURCE_TYPES",
    "BundleListing",
    "BundleVersion",
    "CacheEntry",
    "ConsolidatedBundle",
    "LRUVersionCache",
    "SourceTypeResolver",
    "VersionConsolidator",
    "build_consolidator",
    "compare_versions",
    "extract_base_id",
    "extract_bundle_identity",
    "has_version_suffix",
    "infer_source_type",
    "is_same_bundle_identity",
    "is_update_available",
    "is_valid_semver",
    "matches",
    "parse_version",
    "sort_versions_descending",
    "validate_capacity",
]
