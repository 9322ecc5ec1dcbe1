"""QA validation package for BannerBuildr.

Validates generated variations against their template — checks the entry
file, untouched assets, the TIER assignment, mapped field values, and
the ad size.
"""

from .validator import (
    Issue,
    QAResult,
    VariationValidator,
    validate_variations,
)

__all__ = [
    "Issue",
    "QAResult",
    "VariationValidator",
    "validate_variations",
]
