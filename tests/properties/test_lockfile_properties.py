"""Property-based tests for lockfile serialization and version ordering.

Verifies that:
- Lockfiles survive a to_json -> from_json round trip unchanged.
- Serialization is deterministic.
- compare_versions is antisymmetric and sorting is consistent with it.
- The LRU cache never holds more than its capacity.
"""
from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from bundlelock.core.lockfile import BundleEntry, FileEntry, Lockfile, SourceEntry
from bundlelock.core.versioning import (
    BundleVersion,
    LRUVersionCache,
    compare_versions,
    sort_versions_descending,
)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

ids = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz-"),
    min_size=3,
    max_size=20,
).filter(lambda s: not s.startswith("-") and not s.endswith("-"))

_NUM = r"(0|[1-9][0-9]?)"
versions = st.from_regex(
    rf"{_NUM}\.{_NUM}\.{_NUM}(-(alpha|beta|rc)\.[0-9])?", fullmatch=True
)

checksums = st.text(alphabet="0123456789abcdef", min_size=64, max_size=64)

file_entries = st.builds(
    FileEntry,
    path=st.from_regex(r"[a-z]{1,8}/[a-z]{1,8}\.md", fullmatch=True),
    checksum=checksums,
)


@st.composite
def lockfile_strategy(draw: st.DrawFn) -> Lockfile:
    """A lockfile whose bundles all reference existing sources."""
    source_ids = draw(st.lists(ids, min_size=1, max_size=3, unique=True))
    sources = {
        sid: SourceEntry(
            type=draw(st.sampled_from(["github", "gitlab", "http", "local"])),
            url=f"https://example.com/{sid}",
            branch=draw(st.one_of(st.none(), st.just("main"))),
        )
        for sid in source_ids
    }
    bundles = {
        bid: BundleEntry(
            version=draw(versions),
            source_id=draw(st.sampled_from(source_ids)),
            source_type="github",
            installed_at="2024-01-01T00:00:00.000Z",
            commit_mode=draw(st.sampled_from(["commit", "local-only"])),
            files=draw(st.lists(file_entries, max_size=4)),
            checksum=draw(st.one_of(st.none(), checksums)),
        )
        for bid in draw(st.lists(ids, min_size=1, max_size=5, unique=True))
    }
    return Lockfile(
        generated_by="bundlelock@0.1.0",
        generated_at="2024-01-01T00:00:00.000Z",
        bundles=bundles,
        sources=sources,
    )


# ---------------------------------------------------------------------------
# Lockfile serialization
# ---------------------------------------------------------------------------


@given(lockfile=lockfile_strategy())
@settings(max_examples=50)
def test_json_round_trip(lockfile: Lockfile) -> None:
    assert Lockfile.from_json(lockfile.to_json()) == lockfile


@given(lockfile=lockfile_strategy())
@settings(max_examples=50)
def test_serialization_deterministic(lockfile: Lockfile) -> None:
    assert lockfile.to_json() == Lockfile.from_json(lockfile.to_json()).to_json()


# ---------------------------------------------------------------------------
# Version ordering
# ---------------------------------------------------------------------------


@given(a=versions, b=versions)
def test_compare_antisymmetric(a: str, b: str) -> None:
    assert compare_versions(a, b) == -compare_versions(b, a)


@given(vs=st.lists(versions, min_size=1, max_size=10))
def test_sorted_descending(vs: list[str]) -> None:
    ordered = sort_versions_descending(vs)
    assert sorted(ordered) == sorted(vs)
    for newer, older in zip(ordered, ordered[1:]):
        assert compare_versions(newer, older) >= 0


# ---------------------------------------------------------------------------
# Cache bound
# ---------------------------------------------------------------------------


@given(
    capacity=st.integers(min_value=1, max_value=10),
    keys=st.lists(st.sampled_from("abcdefghijklmnop"), max_size=60),
)
def test_cache_never_exceeds_capacity(capacity: int, keys: list[str]) -> None:
    cache = LRUVersionCache(capacity)
    for key in keys:
        cache.put(key, [BundleVersion(version="1.0.0", bundle_id=key)])
        assert len(cache) <= capacity
    if keys:
        assert keys[-1] in cache
