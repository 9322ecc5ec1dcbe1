"""CLI entry point for BannerBuildr.

Orchestrates the full pipeline: template unpacking, data ingestion,
column mapping, Dynamic.js substitution, packing, and QA validation.

Usage::

    # Generate one variation per T1 row of a CSV
    python -m bannerbuildr.cli generate \\
        --template templates/300x250.zip \\
        --data data/offers.csv --tier T1 \\
        --mapping mappings/offers.yaml \\
        --base-path https://cdn.example.com/banners/ \\
        --output output/variations.zip

    # Generate selected ids from a published Google Sheet
    python -m bannerbuildr.cli generate \\
        --template templates/300x250.zip \\
        --sheet-url https://docs.google.com/spreadsheets/d/<id>/edit \\
        --sheet-name parent --sheet-name creative_data \\
        --ids 101 102 --tier T2 \\
        --output output/preview.zip

    # Show a template's entry file, ad size and Dynamic.js variables
    python -m bannerbuildr.cli inspect --template templates/300x250.zip

    # Suggest a column mapping and save it for review
    python -m bannerbuildr.cli suggest \\
        --template templates/300x250.zip \\
        --data data/offers.csv \\
        --output mappings/offers.yaml

    # Run a saved job config (flags override its values)
    python -m bannerbuildr.cli generate \\
        --config jobs/spring.yaml \\
        --template templates/300x250.zip \\
        --data data/offers.csv \\
        --output output/spring.zip
"""

import argparse
import sys
from pathlib import Path

import yaml

from bannerbuildr.errors import BannerBuildrError
from bannerbuildr.extractor.archive import pack_variations, unpack_template, write_variation
from bannerbuildr.generator.assembler import get_ad_size
from bannerbuildr.generator.builder import PARENT_TAB, VariationBuilder
from bannerbuildr.generator.locator import extract_variables
from bannerbuildr.processor.ingestion import (
    detect_tier,
    fetch_sheet_tabs,
    order_columns_for_tier,
    read_rows,
    select_row,
)
from bannerbuildr.processor.mapper import suggest_mapping
from bannerbuildr.qa.validator import VariationValidator
from bannerbuildr.schema.loader import load_config, load_mapping, save_mapping
from bannerbuildr.schema.models import JobConfig, SheetSource, Tier


# ---------------------------------------------------------------------------
# Job assembly
# ---------------------------------------------------------------------------

def _load_template(args):
    """Unpack the --template archive."""
    path = Path(args.template)
    if not path.exists():
        _error(f"Template file not found: {path}")
    template = unpack_template(path)
    _info(f"Template: {path.name} ({len(template.files)} files, "
          f"entry {template.entry_file})")
    return template


def _job_config(args):
    """JobConfig from --config with CLI flags layered on top."""
    config = JobConfig()
    if getattr(args, "config", None):
        path = Path(args.config)
        if not path.exists():
            _error(f"Config file not found: {path}")
        config = load_config(path)

    if getattr(args, "tier", None):
        config.tier = Tier.coerce(args.tier)
    if getattr(args, "mapping", None):
        path = Path(args.mapping)
        if not path.exists():
            _error(f"Mapping file not found: {path}")
        config.mapping = load_mapping(path)
    if getattr(args, "base_path", None):
        config.base_asset_path = args.base_path
    if getattr(args, "key_field", None):
        config.key_field = args.key_field
    if getattr(args, "ids", None):
        config.ids = [str(i) for i in args.ids]
    if getattr(args, "sheet_url", None):
        config.sheet = SheetSource(url=args.sheet_url,
                                   tabs=list(args.sheet_name or [PARENT_TAB]))
    if getattr(args, "workers", None):
        config.max_workers = args.workers
    if getattr(args, "require_dynamic_js", False):
        config.require_dynamic_js = True
    return config


def _generate_from_file(args, builder, config):
    """Build from --data; returns (batch, variation -> row lookup)."""
    rowset = read_rows(Path(args.data), args.sheet)
    _info(f"Rows: {len(rowset)} from {Path(args.data).name}")

    if config.ids:
        batch = builder.build_for_ids(rowset.rows, config.ids, config.key_field)
        rows = [select_row(rowset.rows, key, config.key_field) for key in config.ids]
    else:
        batch = builder.build_batch(rowset.rows, max_workers=config.max_workers)
        rows = rowset.rows
    return batch, rows


def _generate_from_sheet(builder, config):
    """Build from the configured Google Sheet tabs."""
    if not config.ids:
        _error("Sheet generation needs --ids (or ids in the job config).")
    sheet = config.sheet
    tabs = sheet.tabs or [PARENT_TAB]
    _info(f"Fetching {len(tabs)} sheet tab(s): {', '.join(tabs)}")
    rowsets = fetch_sheet_tabs(sheet.url, tabs)
    batch = builder.build_from_sheet_tabs(
        {tab: rs.rows for tab, rs in rowsets.items()},
        config.ids, config.key_field,
    )
    # Sheet variations map object keys directly; no per-field row to check
    return batch, None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_generate(args):
    """Generate variations and pack them into one archive."""
    config = _job_config(args)
    if not args.data and config.sheet is None:
        _error("Give --data or --sheet-url (or a sheet in the job config).")

    template = _load_template(args)
    if not config.mapping:
        _warn("No column mapping given; only TIER will be set")
    _info(f"Tier: {config.tier.value}, {len(config.mapping)} mapped field(s)")

    builder = VariationBuilder(
        template, config.mapping, config.tier,
        base_asset_path=config.base_asset_path,
        require_dynamic_js=config.require_dynamic_js,
    )

    if args.data:
        batch, rows = _generate_from_file(args, builder, config)
    else:
        batch, rows = _generate_from_sheet(builder, config)

    for w in builder.template_warnings + batch.warnings:
        _warn(w)
    for failure in batch.failures:
        _warn(str(failure))
    if not batch.variations:
        _error("No variations generated.")

    _info(f"Generated {len(batch.variations)} variation(s)")
    if args.verbose:
        for variation in batch.variations:
            _info(f"{variation.name}: {variation.width}x{variation.height}")
            for w in variation.warnings:
                _warn(f"{variation.name}: {w}")

    # QA validation
    if not args.skip_qa:
        _info("Running QA validation...")
        validator = VariationValidator(template, config.mapping, config.tier,
                                       config.base_asset_path)
        pairs = [
            (v, rows[v.row_index] if rows is not None else None)
            for v in batch.variations
        ]
        qa_result = validator.validate_all(pairs)

        if qa_result.passed:
            _info(qa_result.summary())
        else:
            _warn(qa_result.summary())
            if args.verbose:
                print(qa_result.report(), file=sys.stderr)

            if not args.force:
                _error("QA validation failed. Use --force to write anyway, "
                       "or --skip-qa to skip validation.")
    else:
        _info("QA validation skipped (--skip-qa)")

    # Write output
    archive = pack_variations(batch.variations)
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(archive)
    _info(f"Written: {output} ({len(archive):,} bytes)")

    if args.preview_dir:
        for variation in batch.variations:
            write_variation(variation, args.preview_dir)
        _info(f"Preview files: {args.preview_dir}")


def cmd_inspect(args):
    """Show template information."""
    template = _load_template(args)
    width, height = get_ad_size(template.entry_html())

    print(f"Entry file:  {template.entry_file}")
    print(f"Ad size:     {width}x{height}")
    print(f"Dynamic.js:  {template.dynamic_js_file or '(none)'}")
    print(f"Files:       {len(template.files)}")

    source = template.dynamic_js()
    if source is None:
        return
    variables = extract_variables(source)
    print()
    print(f"Variables:   {len(variables)}")
    for var in variables:
        print(f"  {var}")


def cmd_suggest(args):
    """Suggest a column mapping for a data file."""
    template = _load_template(args)
    source = template.dynamic_js()
    if source is None:
        _error("Template has no Dynamic.js; nothing to map.")

    rowset = read_rows(Path(args.data), args.sheet)
    tier = Tier.coerce(args.tier) if args.tier else detect_tier(rowset.columns)
    columns = order_columns_for_tier(rowset.columns, tier) if tier else rowset.columns

    suggestion = suggest_mapping(columns, extract_variables(source))
    _info(f"Matched {len(suggestion.mapping)}/{len(columns)} column(s) "
          f"({suggestion.coverage:.0%})")
    for w in suggestion.warnings:
        _warn(w)
    if suggestion.unmatched_columns:
        _warn("Unmatched columns: " + ", ".join(suggestion.unmatched_columns))

    if args.output:
        save_mapping(suggestion.mapping, args.output)
        _info(f"Written: {args.output}")
    else:
        yaml.dump(suggestion.mapping, sys.stdout, default_flow_style=False,
                  sort_keys=False, allow_unicode=True)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------

def _info(msg):
    print(f"  {msg}", file=sys.stderr)


def _warn(msg):
    print(f"  WARNING: {msg}", file=sys.stderr)


def _error(msg):
    print(f"  ERROR: {msg}", file=sys.stderr)
    sys.exit(1)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def build_parser():
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bannerbuildr",
        description="Generate HTML5 banner variations from a template and data rows.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ---- generate ----
    gen = subparsers.add_parser(
        "generate",
        help="Generate banner variations from data rows.",
    )
    _add_template_args(gen)
    _add_data_args(gen)
    _add_job_args(gen)
    gen.add_argument(
        "-o", "--output",
        required=True,
        help="Output zip path (one folder per variation).",
    )
    gen.add_argument(
        "--preview-dir",
        dest="preview_dir",
        help="Also write each variation to <dir>/<variation id>/.",
    )
    gen.add_argument(
        "--skip-qa",
        action="store_true",
        default=False,
        help="Skip QA validation after generation.",
    )
    gen.add_argument(
        "--force",
        action="store_true",
        default=False,
        help="Write output even if QA validation fails.",
    )
    gen.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Show per-variation detail (full QA report on failure).",
    )
    gen.set_defaults(func=cmd_generate)

    # ---- inspect ----
    insp = subparsers.add_parser(
        "inspect",
        help="Show a template's entry file, ad size and variables.",
    )
    _add_template_args(insp)
    insp.set_defaults(func=cmd_inspect)

    # ---- suggest ----
    sug = subparsers.add_parser(
        "suggest",
        help="Suggest a column mapping for a data file.",
    )
    _add_template_args(sug)
    sug.add_argument(
        "--data",
        required=True,
        help="Data file (.csv, .xlsx, .xlsm).",
    )
    sug.add_argument(
        "--sheet",
        help="Workbook tab to read (default: first).",
    )
    sug.add_argument(
        "--tier",
        choices=["T1", "T2"],
        help="Tier (default: detected from the data columns).",
    )
    sug.add_argument(
        "-o", "--output",
        help="Write the mapping to this YAML/JSON file instead of stdout.",
    )
    sug.set_defaults(func=cmd_suggest)

    return parser


def _add_template_args(parser):
    """Add the --template arg to a subparser."""
    parser.add_argument(
        "--template",
        required=True,
        help="Banner template zip (HTML entry file plus Dynamic.js).",
    )


def _add_data_args(parser):
    """Add data source arguments."""
    data = parser.add_argument_group("data sources")
    data.add_argument(
        "--data",
        help="Data file (.csv, .xlsx, .xlsm).",
    )
    data.add_argument(
        "--sheet",
        help="Workbook tab to read from --data (default: first).",
    )
    data.add_argument(
        "--sheet-url",
        dest="sheet_url",
        help="Published Google Sheet URL.",
    )
    data.add_argument(
        "--sheet-name",
        dest="sheet_name",
        action="append",
        help="Google Sheet tab to read; repeat for several (default: parent).",
    )


def _add_job_args(parser):
    """Add job configuration arguments."""
    job = parser.add_argument_group("job")
    job.add_argument(
        "--config",
        help="Job config YAML; the flags below override its values.",
    )
    job.add_argument(
        "--tier",
        choices=["T1", "T2"],
        help="Tier (default: T1, or the job config's).",
    )
    job.add_argument(
        "--mapping",
        help="Column mapping file (.yaml or .json).",
    )
    job.add_argument(
        "--base-path",
        dest="base_path",
        help="Prefix for relative image values.",
    )
    job.add_argument(
        "--ids",
        nargs="+",
        help="Only generate these row ids.",
    )
    job.add_argument(
        "--key-field",
        dest="key_field",
        help="Column holding row ids (default: id).",
    )
    job.add_argument(
        "--workers",
        type=int,
        help="Thread pool size for batch generation.",
    )
    job.add_argument(
        "--require-dynamic-js",
        dest="require_dynamic_js",
        action="store_true",
        default=False,
        help="Fail when the template has no Dynamic.js.",
    )


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv=None):
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except BannerBuildrError as exc:
        _error(str(exc))


if __name__ == "__main__":
    main()
