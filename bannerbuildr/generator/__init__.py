"""Variation generator package — Dynamic.js rewriting and assembly.

Modules:
    locator: Finds assignment lines for a variable path
    substitution: Per-row rewriting of Dynamic.js with field policies
    assembler: Builds a Variation from the rewritten file set
    builder: Single-row, batch and sheet-object generation
"""

from .assembler import assemble, build_variation_name, generate_variation_id, get_ad_size
from .builder import BatchResult, RowFailure, VariationBuilder
from .locator import (
    AssignmentMatch,
    extract_variables,
    find_assignment,
    locate,
    replace_assignment,
)
from .substitution import FieldChange, SubstitutionResult, TIER_PATH, rewrite, substitute

__all__ = [
    "AssignmentMatch",
    "BatchResult",
    "FieldChange",
    "RowFailure",
    "SubstitutionResult",
    "TIER_PATH",
    "VariationBuilder",
    "assemble",
    "build_variation_name",
    "extract_variables",
    "find_assignment",
    "generate_variation_id",
    "get_ad_size",
    "locate",
    "replace_assignment",
    "rewrite",
    "substitute",
]
