"""Schema package — typed models shared across BannerBuildr.

Provides the contract between ingestion, the substitution engine, and
the variation assembler:

- models.py: Core dataclasses (TemplateAssets, Variation, JobConfig, Tier)
- literals.py: JavaScript string literal formatting and decoding
- loader.py: YAML serialization of job configs and column mappings
"""

from .literals import format_js_string, is_missing, parse_js_string, to_text
from .loader import load_config, load_mapping, save_config, save_mapping
from .models import (
    ColumnMapping,
    JobConfig,
    ROOT_OBJECT,
    Row,
    RowContext,
    SheetSource,
    TIER_COLUMNS,
    TemplateAssets,
    Tier,
    URL_FIELD,
    Variation,
)

__all__ = [
    # Models
    "ColumnMapping",
    "JobConfig",
    "Row",
    "RowContext",
    "SheetSource",
    "TemplateAssets",
    "Tier",
    "Variation",
    # Constants
    "ROOT_OBJECT",
    "TIER_COLUMNS",
    "URL_FIELD",
    # Loader
    "load_config",
    "load_mapping",
    "save_config",
    "save_mapping",
    # Literals
    "format_js_string",
    "is_missing",
    "parse_js_string",
    "to_text",
]
