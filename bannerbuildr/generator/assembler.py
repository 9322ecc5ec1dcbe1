"""Variation assembler — turns a rewritten Dynamic.js into a Variation.

Copies the template's file set with only the Dynamic.js entry replaced,
reads the ad size from the entry HTML's ``ad.size`` meta tag, names the
variation from the row's identifying fields and gives it a unique id.
"""

import re
import secrets
import string
import time
from typing import Any, Iterable, Mapping

from bannerbuildr.schema.literals import to_text
from bannerbuildr.schema.models import (
    DEFAULT_DYNAMIC_JS,
    RowContext,
    TemplateAssets,
    Variation,
)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_AD_SIZE = (300, 250)

_AD_SIZE_RE = re.compile(
    r"""<meta\s+name=["']ad.size["']\s+content=["']"""
    r"""\s*width=(\d+)\s*,\s*height=(\d+)\s*["']"""
)

_NAME_STRIP_RE = re.compile(r"[^a-zA-Z0-9_-]")

ID_FIELDS = ("id", "ID", "Id", "creative_id", "creativeId")
OFFER_FIELDS = ("custom_offer", "offerType", "offer")

_ID_ALPHABET = string.digits + string.ascii_lowercase


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def get_ad_size(html: str) -> tuple[int, int]:
    """Width and height from ``<meta name="ad.size">``, else 300x250."""
    m = _AD_SIZE_RE.search(html or "")
    if m:
        return int(m.group(1)), int(m.group(2))
    return DEFAULT_AD_SIZE


def _first_value(row: Mapping[str, Any], fields: Iterable[str]) -> str:
    for name in fields:
        text = to_text(row.get(name)).strip()
        if text:
            return text
    return ""


def sanitize_name(name: str) -> str:
    return _NAME_STRIP_RE.sub("", name)


def build_variation_name(context: RowContext) -> str:
    """``<prefix>_<n>_<id>_<offer>_<timestamp>`` with unsafe characters removed."""
    timestamp = context.timestamp_ms
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    parts = [
        context.prefix,
        str(context.index + 1),
        _first_value(context.row, ID_FIELDS) or "data",
        _first_value(context.row, OFFER_FIELDS),
        str(timestamp),
    ]
    return sanitize_name("_".join(p for p in parts if p))


def generate_variation_id() -> str:
    """``banner-<epoch ms>-<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"banner-{int(time.time() * 1000)}-{suffix}"


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def assemble(template: TemplateAssets, rewritten_dynamic_js: str | None,
             context: RowContext, warnings: Iterable[str] = ()) -> Variation:
    """Build the Variation for one row.

    ``rewritten_dynamic_js`` replaces the template's Dynamic.js entry
    (stored as ``Dynamic.js`` when the template has none); ``None``
    leaves the file set exactly as the template shipped it.
    """
    files = dict(template.files)
    if rewritten_dynamic_js is not None:
        name = template.dynamic_js_file or DEFAULT_DYNAMIC_JS
        files[name] = rewritten_dynamic_js.encode("utf-8")

    html = files[template.entry_file].decode("utf-8", errors="replace")
    width, height = get_ad_size(html)

    return Variation(
        name=build_variation_name(context),
        variation_id=generate_variation_id(),
        html_file=template.entry_file,
        width=width,
        height=height,
        files=files,
        warnings=tuple(warnings),
        row_index=context.index,
    )
