"""Column-to-variable mapper for BannerBuildr.

Produces the column mapping the substitution engine consumes: data field
name -> fully-qualified Dynamic.js variable path.  Two sources:

- :func:`suggest_mapping` — a name-matching heuristic over the data
  columns and the variables assigned in Dynamic.js.  It only proposes;
  the user reviews and confirms the mapping before generation.
- :func:`object_mapping` — the Google Sheets layout, where each tab is
  one object of ``devDynamicContent`` (``parent[0]``, ``creative_data[0]``,
  ``OMS[0]``) and each column is a key of that object.

Usage::

    from bannerbuildr.generator.locator import extract_variables
    from bannerbuildr.processor.mapper import suggest_mapping

    suggestion = suggest_mapping(rowset.columns, extract_variables(source))
    print(suggestion.mapping)            # {"headline": "devDynamicContent.parent[0].headline"}
    print(suggestion.unmatched_columns)  # columns left for manual mapping
"""

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from bannerbuildr.schema.models import ROOT_OBJECT, URL_FIELD, ColumnMapping


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Sheet tab -> object path under devDynamicContent
SHEET_OBJECTS = {
    "parent": "parent[0]",
    "creative_data": "creative_data[0]",
    "OMS": "OMS[0]",
}

PREFERRED_OBJECT = "parent[0]"

# Normalized column name -> normalized variable key it usually feeds
KNOWN_ALIASES: dict[str, str] = {
    "offer": "customoffer",
    "customoffer": "customoffer",
    "offertype": "offertype",
    "headline": "headline",
    "title": "headline",
    "subheadline": "subheadline",
    "subhead": "subheadline",
    "cta": "cta",
    "calltoaction": "cta",
    "button": "cta",
    "disclaimer": "disclaimer",
    "legal": "disclaimer",
    "image": "image",
    "img": "image",
    "logo": "logo",
    "url": "exiturl",
    "exiturl": "exiturl",
    "clickurl": "exiturl",
    "landingpage": "exiturl",
}

# Mapping UI value meaning "do not map this column"
NONE_CHOICES = {"", "none", "null", "-"}

_NORMALIZE_RE = re.compile(r"[^a-z0-9]")
_INDEX_RE = re.compile(r"\[\d+\]")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def normalize_name(name: str) -> str:
    """Lowercase and drop everything but letters and digits."""
    return _NORMALIZE_RE.sub("", str(name).lower())


def variable_key(path: str) -> str:
    """Last meaningful segment of a variable path (``.Url`` skipped)."""
    segments = [s for s in _INDEX_RE.sub("", path).split(".") if s]
    if len(segments) > 2 and segments[-1] == URL_FIELD:
        segments = segments[:-1]
    return segments[-1] if segments else ""


def variable_object(path: str) -> str:
    """Object segment of a path: ``parent[0]`` for ``devDynamicContent.parent[0].x``."""
    rest = path[len(ROOT_OBJECT) + 1:] if path.startswith(ROOT_OBJECT + ".") else path
    return rest.split(".", 1)[0]


def base_variable(path: str) -> str:
    """Strip a trailing ``.Url`` (image values are routed to it at run time)."""
    suffix = "." + URL_FIELD
    return path[:-len(suffix)] if path.endswith(suffix) else path


def normalize_mapping(mapping: Mapping[str, Any] | None) -> ColumnMapping:
    """Drop unmapped columns (blank or "none" selections)."""
    result: ColumnMapping = {}
    for column, path in (mapping or {}).items():
        text = "" if path is None else str(path).strip()
        if text.lower() in NONE_CHOICES:
            continue
        result[str(column)] = text
    return result


# ---------------------------------------------------------------------------
# Suggestion
# ---------------------------------------------------------------------------

@dataclass
class MappingSuggestion:
    """Output of :func:`suggest_mapping`."""
    mapping: ColumnMapping
    unmatched_columns: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def coverage(self) -> float:
        """Fraction of columns that received a suggestion (0.0-1.0)."""
        total = len(self.mapping) + len(self.unmatched_columns)
        return len(self.mapping) / total if total else 0.0


def _candidates(variables: Iterable[str]) -> dict[str, list[str]]:
    """Normalized variable key -> variable paths (``.Url`` folded into parent)."""
    index: dict[str, list[str]] = {}
    for var in variables:
        path = base_variable(var)
        key = normalize_name(variable_key(path))
        if not key:
            continue
        paths = index.setdefault(key, [])
        if path not in paths:
            paths.append(path)
    return index


def _pick(paths: list[str]) -> str:
    for path in paths:
        if variable_object(path) == PREFERRED_OBJECT:
            return path
    return paths[0]


def suggest_mapping(columns: Iterable[str],
                    variables: Iterable[str]) -> MappingSuggestion:
    """Propose a mapping of data columns to Dynamic.js variables.

    A column matches a variable when their normalized names are equal, or
    when the column is a known alias of the variable's key.  Ambiguous
    names prefer ``parent[0]``; each variable is suggested at most once.
    """
    index = _candidates(variables)
    mapping: ColumnMapping = {}
    unmatched: list[str] = []
    warnings: list[str] = []
    used: set[str] = set()

    for column in columns:
        norm = normalize_name(column)
        paths = index.get(norm) or index.get(KNOWN_ALIASES.get(norm, ""), [])
        paths = [p for p in paths if p not in used]
        if not paths:
            unmatched.append(column)
            continue
        chosen = _pick(paths)
        if len(paths) > 1:
            warnings.append(
                f"Column {column!r} matches {len(paths)} variables; "
                f"suggesting {chosen}."
            )
        mapping[column] = chosen
        used.add(chosen)

    return MappingSuggestion(mapping=mapping, unmatched_columns=unmatched,
                             warnings=warnings)


# ---------------------------------------------------------------------------
# Sheet objects
# ---------------------------------------------------------------------------

def object_path(tab: str) -> str:
    """Object path for a sheet tab (``parent`` -> ``parent[0]``)."""
    return SHEET_OBJECTS.get(tab, tab if tab.endswith("]") else f"{tab}[0]")


def object_mapping(object_rows: Mapping[str, Mapping[str, Any]]
                   ) -> tuple[ColumnMapping, dict[str, Any]]:
    """Mapping and merged row for one row per ``devDynamicContent`` object.

    ``object_rows`` is keyed by object path (or sheet tab name).  Field
    names are qualified with their object so keys shared between objects
    (``id`` in both ``parent`` and ``creative_data``) do not collide.
    """
    mapping: ColumnMapping = {}
    row: dict[str, Any] = {}
    for tab, data in object_rows.items():
        obj = object_path(tab)
        for key, value in (data or {}).items():
            qualified = f"{obj}.{key}"
            mapping[qualified] = f"{ROOT_OBJECT}.{obj}.{key}"
            row[qualified] = value
    return mapping, row
