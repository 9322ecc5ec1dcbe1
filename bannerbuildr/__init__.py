"""BannerBuildr — data-driven HTML5 banner variations.

Unpacks a zipped banner template, rewrites the assignments in its
``Dynamic.js`` file from tabular data (one variation per row) and packs
the results back into zip archives.

Packages:
    schema:    Core dataclasses, JS literal formatting, YAML job config
    processor: Row ingestion (CSV, Excel, Google Sheets) and column mapping
    generator: Assignment locator, substitution engine, variation assembly
    extractor: Template archive unpacking and variation packing
    qa:        Validation of generated variations
"""

__version__ = "0.4.0"
