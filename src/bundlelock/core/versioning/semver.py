"""Semantic version utilities and bundle identity extraction.

Versions are compared by SemVer 2.0.0 precedence (section 11): build metadata
is ignored and a pre-release sorts below its associated normal version.
Inputs that are not strict SemVer are handled in three steps:

1. ``clean``: strip whitespace, a leading ``=`` or ``v``, and parse strictly.
2. ``coerce``: take the first ``X[.Y[.Z]]`` run of digits (``"v2"`` becomes
   ``"2.0.0"``, ``"release-1.4"`` becomes ``"1.4.0"``).
3. Plain string comparison as a last resort, logged as a warning.

GitHub bundle ids carry the release version as a suffix
(``owner-repo-v1.2.3``); ``extract_bundle_identity`` strips it so that all
releases of one repository share an identity.

References
----------
.. [SemVer] Preston-Werner, T. (2013). "Semantic Versioning 2.0.0."
   https://semver.org/
"""

from __future__ import annotations

import logging
import re
from functools import cmp_to_key

from bundlelock.exceptions import VersionError

logger = logging.getLogger(__name__)

# Bundle ids longer than this are rejected before any regex runs.
MAX_BUNDLE_ID_LENGTH = 200
MAX_VERSION_LENGTH = 100

_SEMVER_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?$"
)

_COERCE_RE = re.compile(r"(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?")

# Quantifier limits keep the suffix match linear on hostile input.
_IDENTITY_SUFFIX_RE = re.compile(
    r"-v?\d{1,3}\.\d{1,3}\.\d{1,3}(?:-[a-zA-Z0-9._-]{1,50})?$"
)
VERSION_SUFFIX_RE = re.compile(r"-v?\d{1,3}\.\d{1,3}\.\d{1,3}(?:-[\w.]+)?$")

_PreKey = tuple[tuple[int, int | str], ...]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def clean(version: str) -> str | None:
    """Normalize a strict SemVer string, or return None.

    >>> clean(" =v1.2.3-beta.1+build.5 ")
    '1.2.3-beta.1'
    """
    if not isinstance(version, str):
        return None
    candidate = version.strip().lstrip("=v").strip()
    m = _SEMVER_RE.match(candidate)
    if not m:
        return None
    base = f"{int(m.group('major'))}.{int(m.group('minor'))}.{int(m.group('patch'))}"
    pre = m.group("pre")
    return f"{base}-{pre}" if pre else base


def coerce(version: str) -> str | None:
    """Extract the first ``X[.Y[.Z]]`` from ``version`` as ``X.Y.Z``."""
    if not isinstance(version, str):
        return None
    m = _COERCE_RE.search(version)
    if not m:
        return None
    major, minor, patch = (int(g) if g else 0 for g in m.groups())
    return f"{major}.{minor}.{patch}"


def parse_version(version: str) -> str | None:
    """Clean, else coerce, ``version``; None when neither works."""
    if not version:
        return None
    cleaned = clean(version)
    if cleaned:
        return cleaned
    coerced = coerce(version)
    if coerced:
        logger.debug("Coerced version: %r -> %r", version, coerced)
        return coerced
    logger.warning("Failed to parse version: %r", version)
    return None


def is_valid_semver(version: str) -> bool:
    return clean(version) is not None or coerce(version) is not None


def _precedence_key(normalized: str) -> tuple[int, int, int, int, _PreKey]:
    m = _SEMVER_RE.match(normalized)
    if not m:  # pragma: no cover - callers pass clean()/coerce() output
        raise VersionError(f"Invalid semantic version: {normalized!r}")
    pre = m.group("pre")
    pre_key: _PreKey = ()
    if pre:
        pre_key = tuple(
            (0, int(part)) if part.isdigit() else (1, part) for part in pre.split(".")
        )
    # A release (no pre-release) outranks every pre-release of the same core.
    return (
        int(m.group("major")),
        int(m.group("minor")),
        int(m.group("patch")),
        0 if pre else 1,
        pre_key,
    )


def _cmp(a: object, b: object) -> int:
    return (a > b) - (a < b)  # type: ignore[operator]


def _check_length(*versions: str) -> None:
    for v in versions:
        if not v:
            raise VersionError("Version strings cannot be empty")
        if len(v) > MAX_VERSION_LENGTH:
            raise VersionError(f"Version string exceeds maximum length of {MAX_VERSION_LENGTH}")


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def compare_versions(v1: str, v2: str) -> int:
    """Compare two versions.

    Returns:
        -1 if ``v1 < v2``, 0 if equal, 1 if ``v1 > v2``.

    Raises:
        VersionError: If either version is empty or longer than
            ``MAX_VERSION_LENGTH``.
    """
    _check_length(v1, v2)

    clean1, clean2 = clean(v1), clean(v2)
    if clean1 and clean2:
        return _cmp(_precedence_key(clean1), _precedence_key(clean2))

    coerced1, coerced2 = clean1 or coerce(v1), clean2 or coerce(v2)
    if coerced1 and coerced2:
        logger.debug("Coerced versions for comparison: %r -> %r, %r -> %r",
                     v1, coerced1, v2, coerced2)
        return _cmp(_precedence_key(coerced1), _precedence_key(coerced2))

    logger.warning("Falling back to string comparison for invalid semver: %r, %r", v1, v2)
    return _cmp(v1, v2)


def is_update_available(installed_version: str, latest_version: str) -> bool:
    """True when ``latest_version`` is strictly newer than ``installed_version``."""
    return compare_versions(latest_version, installed_version) > 0


def sort_versions_descending(versions: list[str]) -> list[str]:
    """Sort newest first; unparseable versions are dropped."""
    valid: list[tuple[str, str]] = []
    for v in versions:
        normalized = clean(v) or coerce(v)
        if normalized:
            valid.append((v, normalized))
        else:
            logger.debug("Filtering out invalid version during sort: %r", v)
    valid.sort(
        key=cmp_to_key(lambda a, b: _cmp(_precedence_key(a[1]), _precedence_key(b[1]))),
        reverse=True,
    )
    return [original for original, _ in valid]


# ---------------------------------------------------------------------------
# Bundle identity
# ---------------------------------------------------------------------------


def extract_bundle_identity(bundle_id: str, source_type: str) -> str:
    """Strip the release-version suffix from GitHub bundle ids.

    >>> extract_bundle_identity("microsoft-vscode-v1.0.0", "github")
    'microsoft-vscode'
    >>> extract_bundle_identity("bundle-id-1.0.0", "gitlab")
    'bundle-id-1.0.0'

    Raises:
        VersionError: If ``bundle_id`` exceeds ``MAX_BUNDLE_ID_LENGTH``.
    """
    if len(bundle_id) > MAX_BUNDLE_ID_LENGTH:
        raise VersionError(f"Bundle ID exceeds maximum length of {MAX_BUNDLE_ID_LENGTH}")
    if source_type != "github":
        return bundle_id
    m = _IDENTITY_SUFFIX_RE.search(bundle_id)
    if m:
        identity = bundle_id[: m.start()]
        logger.debug("Extracted bundle identity: %r -> %r", bundle_id, identity)
        return identity
    return bundle_id


def is_same_bundle_identity(id1: str, type1: str, id2: str, type2: str) -> bool:
    return extract_bundle_identity(id1, type1) == extract_bundle_identity(id2, type2)


def matches(bundle_id1: str, bundle_id2: str, source_type: str) -> bool:
    """GitHub ids match by identity; every other source needs an exact match."""
    if source_type == "github":
        return is_same_bundle_identity(bundle_id1, source_type, bundle_id2, source_type)
    return bundle_id1 == bundle_id2


def extract_base_id(bundle_id: str) -> str:
    return VERSION_SUFFIX_RE.sub("", bundle_id)


def has_version_suffix(bundle_id: str) -> bool:
    return VERSION_SUFFIX_RE.search(bundle_id) is not None
