"""bundlelock: Durable, scope-aware tracking of installed content bundles."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Tool identity written into every lockfile as ``generatedBy``.
_PRODUCT_ID = "bundlelock"
_GENERATED_BY = f"{_PRODUCT_ID}@{__version__}"
