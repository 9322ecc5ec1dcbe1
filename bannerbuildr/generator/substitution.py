"""Substitution engine — rewrites Dynamic.js assignments from one data row.

For every ``(field, variable path)`` pair of the column mapping, in
mapping order, the row's value is formatted as a JS string literal and
written over the first assignment to the target path.  Which path is
targeted, and how the value is encoded, is decided per field:

1. Tier literal   — ``devDynamicContent.parent[0].TIER`` is always set to
                    the tier code, in a final pass after every other field.
2. JSON blob      — T2 only, fields ``customGroups`` / ``rd_values`` /
                    ``rd-values``: the value is JSON text and is stored as a
                    string whose content is that JSON, for the banner to
                    ``JSON.parse`` at render time.
3. Image URL      — values ending in ``.jpg`` / ``.png`` / ``.svg`` go to the
                    ``.Url`` child of the mapped path, with the base asset
                    path prepended to relative values.
4. Scalar         — everything else goes to the mapped path itself.

Blank values are skipped (the template default stays).  A target that is
not assigned anywhere in the source is a warning, never an error.

The engine is a pure function of its inputs, so rows can be processed in
any order or concurrently.

Usage::

    from bannerbuildr.generator.substitution import substitute

    result = substitute(source, {"headline": "devDynamicContent.parent[0].headline"},
                        {"headline": "Big Sale"}, "T1")
    result.text       # rewritten Dynamic.js
    result.warnings   # list of warning strings
"""

import json
from dataclasses import dataclass, field
from typing import Any, Mapping

from bannerbuildr.schema.literals import format_js_string, to_text
from bannerbuildr.schema.models import URL_FIELD, Tier

from .locator import find_assignment, is_multiline, replace_assignment


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TIER_PATH = "devDynamicContent.parent[0].TIER"

JSON_BLOB_FIELDS = frozenset({"customGroups", "rd_values", "rd-values"})

IMAGE_SUFFIXES = (".jpg", ".png", ".svg")

POLICY_TIER = "tier"
POLICY_JSON = "json"
POLICY_IMAGE = "image"
POLICY_SCALAR = "scalar"


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldChange:
    """One assignment that was rewritten."""
    field: str
    path: str
    literal: str
    line_index: int
    policy: str


@dataclass
class SubstitutionResult:
    """Output of :func:`substitute`."""
    text: str
    changes: list[FieldChange] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def changed_paths(self) -> list[str]:
        return [c.path for c in self.changes]

    def change_for(self, path: str) -> FieldChange | None:
        """The last change written to ``path``, if any."""
        for change in reversed(self.changes):
            if change.path == path:
                return change
        return None


# ---------------------------------------------------------------------------
# Field policies
# ---------------------------------------------------------------------------

def is_blank(value: Any) -> bool:
    """Missing, NaN or the empty string.  Whitespace is a value."""
    return to_text(value) == ""


def is_image_value(value: Any) -> bool:
    """True when the trimmed value names a .jpg/.png/.svg (case-sensitive)."""
    return to_text(value).strip().endswith(IMAGE_SUFFIXES)


def image_url(value: Any, base_asset_path: str | None = None) -> str:
    """Trimmed image value, prefixed with the base path unless absolute."""
    text = to_text(value).strip()
    if base_asset_path and not text.startswith("http"):
        return base_asset_path + text
    return text


def url_path(path: str) -> str:
    """The ``.Url`` child of ``path`` (unchanged if already a Url path)."""
    if path.endswith("." + URL_FIELD):
        return path
    return f"{path}.{URL_FIELD}"


def resolve_field(field_name: str, path: str, value: Any, tier: Tier,
                  base_asset_path: str | None = None) -> tuple[str, str, str]:
    """Decide ``(target path, literal, policy)`` for one mapped field.

    Object-qualified field names (``parent[0].customGroups``) are matched
    on their last segment.
    """
    if tier is Tier.T2 and field_name.rsplit(".", 1)[-1] in JSON_BLOB_FIELDS:
        return path, format_js_string(to_text(value)), POLICY_JSON
    if is_image_value(value):
        url = image_url(value, base_asset_path)
        return url_path(path), format_js_string(url), POLICY_IMAGE
    return path, format_js_string(value), POLICY_SCALAR


def _check_json(field_name: str, value: Any) -> str | None:
    try:
        json.loads(to_text(value))
    except ValueError:
        return f"Field {field_name!r} is not valid JSON; passing it through as text."
    return None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

def _apply(result: SubstitutionResult, field_name: str, target: str,
           literal: str, policy: str) -> bool:
    match = find_assignment(result.text, target)
    if match is None:
        result.missing.append(target)
        result.warnings.append(f'Could not find "{target}" in Dynamic.js to replace.')
        return False
    if is_multiline(match):
        result.warnings.append(
            f'Skipped "{target}" (line {match.line_index + 1}): '
            f"multi-line assignments are not supported."
        )
        return False
    result.text = replace_assignment(result.text, match, literal)
    result.changes.append(FieldChange(
        field=field_name,
        path=target,
        literal=literal,
        line_index=match.line_index,
        policy=policy,
    ))
    return True


def substitute(source_text: str, column_mapping: Mapping[str, str] | None,
               row: Mapping[str, Any], tier: Tier | str,
               base_asset_path: str | None = None) -> SubstitutionResult:
    """Rewrite ``source_text`` for one data row.

    Parameters
    ----------
    source_text : str
        The template's Dynamic.js source.
    column_mapping : mapping
        Data field name -> variable path.  ``None`` or empty maps nothing;
        blank paths are ignored.
    row : mapping
        Data field name -> value.
    tier : Tier or str
        ``"T1"`` or ``"T2"``.
    base_asset_path : str, optional
        Prefix for relative image values.

    Returns
    -------
    SubstitutionResult
    """
    tier = Tier.coerce(tier)
    result = SubstitutionResult(text=source_text)

    for field_name, path in (column_mapping or {}).items():
        if not path or not str(path).strip():
            continue
        value = row.get(field_name)
        if is_blank(value):
            continue
        path = str(path).strip()
        target, literal, policy = resolve_field(
            field_name, path, value, tier, base_asset_path)
        if policy == POLICY_JSON:
            problem = _check_json(field_name, value)
            if problem:
                result.warnings.append(problem)
        _apply(result, field_name, target, literal, policy)

    # Tier goes last so no mapped field can overwrite it
    if find_assignment(result.text, TIER_PATH) is None:
        result.warnings.append(
            f'Could not find "{TIER_PATH}" in Dynamic.js; tier not set.')
    else:
        _apply(result, TIER_PATH, TIER_PATH, format_js_string(tier.value),
               POLICY_TIER)
    return result


def rewrite(source_text: str, column_mapping: Mapping[str, str] | None,
            row: Mapping[str, Any], tier: Tier | str,
            base_asset_path: str | None = None) -> str:
    """Like :func:`substitute`, returning only the rewritten text."""
    return substitute(source_text, column_mapping, row, tier,
                      base_asset_path).text
