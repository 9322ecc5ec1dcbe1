"""Variation builder — single-row and batch generation.

Ties the substitution engine and the assembler together for a template,
a column mapping and a tier.  The template is checked once, up front; a
template without an HTML entry file aborts before any row is attempted.

Rows are independent: each gets a fresh copy of the Dynamic.js source and
of the template's file set, so a batch can run on a thread pool and still
return variations in input order.

Usage::

    from bannerbuildr.generator.builder import VariationBuilder

    builder = VariationBuilder(template, mapping, tier="T1",
                               base_asset_path="https://cdn.example.com/")
    batch = builder.build_batch(rowset.rows, max_workers=4)
    for variation in batch.variations:
        print(variation.name, variation.width, variation.height)
"""

import concurrent.futures
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from bannerbuildr.errors import MissingDynamicJsError, MissingEntryFileError, RowError
from bannerbuildr.processor.ingestion import filter_rows_for_tier, select_row
from bannerbuildr.processor.mapper import normalize_mapping, object_mapping, object_path
from bannerbuildr.schema.models import (
    ColumnMapping,
    RowContext,
    TemplateAssets,
    Tier,
    Variation,
)

from .assembler import assemble
from .substitution import SubstitutionResult, substitute


PARENT_TAB = "parent"


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------

@dataclass
class RowFailure:
    """A row (or requested id) that produced no variation."""
    index: int
    key: str
    error: RowError

    def __str__(self) -> str:
        label = f"row {self.index + 1}" if self.index >= 0 else "request"
        if self.key:
            label += f" ({self.key})"
        return f"{label}: {self.error}"


@dataclass
class BatchResult:
    """Output of :meth:`VariationBuilder.build_batch`."""
    variations: list[Variation] = field(default_factory=list)
    failures: list[RowFailure] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)   # rows outside the tier
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class VariationBuilder:
    """Generate variations of one template.

    Parameters
    ----------
    template : TemplateAssets
        The unpacked template (read-only).
    mapping : dict
        Data field -> variable path.  ``None`` maps nothing.
    tier : Tier or str
        ``"T1"`` or ``"T2"``.
    base_asset_path : str, optional
        Prefix for relative image values.
    require_dynamic_js : bool
        Raise :class:`MissingDynamicJsError` instead of generating
        unmodified copies when the template has no Dynamic.js.
    """

    def __init__(self, template: TemplateAssets,
                 mapping: Mapping[str, str] | None, tier: Tier | str,
                 base_asset_path: str | None = None,
                 require_dynamic_js: bool = False):
        if not template.entry_file or template.entry_file not in template.files:
            raise MissingEntryFileError()
        if not template.has_dynamic_js and require_dynamic_js:
            raise MissingDynamicJsError()
        self.template = template
        self.mapping: ColumnMapping = normalize_mapping(mapping)
        self.tier = Tier.coerce(tier)
        self.base_asset_path = base_asset_path or None
        self._source = template.dynamic_js()
        self._template_warnings: list[str] = []
        if self._source is None:
            self._template_warnings.append(
                "Template has no Dynamic.js; variations keep the template's "
                "static content."
            )

    @property
    def template_warnings(self) -> list[str]:
        """Warnings that apply to every variation of this template."""
        return list(self._template_warnings)

    # ------------------------------------------------------------------
    # Single row
    # ------------------------------------------------------------------

    def substitute(self, row: Mapping[str, Any],
                   mapping: Mapping[str, str] | None = None) -> SubstitutionResult | None:
        """Rewritten Dynamic.js for ``row``; None in degraded mode."""
        if self._source is None:
            return None
        return substitute(self._source,
                          self.mapping if mapping is None else mapping,
                          row, self.tier, self.base_asset_path)

    def build_one(self, row: Mapping[str, Any], index: int = 0,
                  prefix: str = "Variation",
                  mapping: Mapping[str, str] | None = None,
                  name_row: Mapping[str, Any] | None = None) -> Variation:
        """Substitute and assemble one row.

        ``name_row`` supplies the identifying fields for the variation name
        when they are not plain keys of ``row``.
        """
        if not isinstance(row, Mapping):
            raise RowError(f"Row {index + 1} is not a field -> value mapping")
        result = self.substitute(row, mapping)
        warnings = list(self._template_warnings)
        if result is not None:
            warnings.extend(result.warnings)
        return assemble(
            self.template,
            result.text if result is not None else None,
            RowContext(row=row if name_row is None else name_row,
                       index=index, prefix=prefix),
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def build_batch(self, rows: Iterable[Mapping[str, Any]],
                    max_workers: int | None = None,
                    fail_fast: bool = False,
                    filter_tier: bool = True) -> BatchResult:
        """One variation per row whose tier column is filled.

        Rows outside the tier are listed in ``skipped``.  A row that fails
        with a :class:`RowError` is recorded in ``failures``, or re-raised
        when ``fail_fast`` is set.
        """
        rows = list(rows)
        if filter_tier:
            eligible = filter_rows_for_tier(rows, self.tier)
        else:
            eligible = list(enumerate(rows))
        result = BatchResult()
        kept = {i for i, _ in eligible}
        result.skipped = [i for i in range(len(rows)) if i not in kept]
        if result.skipped:
            result.warnings.append(
                f"{len(result.skipped)} row(s) have no {self.tier.column!r} "
                f"and were skipped for tier {self.tier.value}."
            )

        outcomes = self._run(eligible, max_workers)
        for (index, _row), outcome in zip(eligible, outcomes):
            if isinstance(outcome, RowError):
                if fail_fast:
                    raise outcome
                result.failures.append(RowFailure(index=index, key="", error=outcome))
            else:
                result.variations.append(outcome)
        return result

    def _build_or_error(self, index: int, row: Mapping[str, Any]):
        try:
            return self.build_one(row, index)
        except RowError as exc:
            return exc

    def _run(self, eligible: Sequence[tuple[int, Mapping[str, Any]]],
             max_workers: int | None) -> list:
        if not max_workers or max_workers <= 1 or len(eligible) <= 1:
            return [self._build_or_error(i, row) for i, row in eligible]
        workers = min(max_workers, len(eligible))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._build_or_error, i, row)
                       for i, row in eligible]
            return [f.result() for f in futures]

    def build_for_ids(self, rows: Sequence[Mapping[str, Any]],
                      ids: Iterable[Any], key_field: str | None = None,
                      fail_fast: bool = True) -> BatchResult:
        """One variation per requested id.

        Every id is mandatory: an id with no matching row raises
        :class:`RowNotFoundError` unless ``fail_fast`` is False, in which
        case it is recorded in ``failures``.
        """
        result = BatchResult()
        for n, key in enumerate(ids):
            try:
                row = select_row(rows, key, key_field)
                result.variations.append(self.build_one(row, n))
            except RowError as exc:
                if fail_fast:
                    raise
                result.failures.append(RowFailure(index=-1, key=str(key), error=exc))
        return result

    # ------------------------------------------------------------------
    # Sheet objects
    # ------------------------------------------------------------------

    def build_from_objects(self, object_rows: Mapping[str, Mapping[str, Any]],
                           index: int = 0) -> Variation:
        """Preview one variation from one row per ``devDynamicContent`` object.

        Each key of each object row is written to
        ``devDynamicContent.<object>.<key>``; the column mapping is not used.
        """
        mapping, row = object_mapping(object_rows)
        parent = object_rows.get(PARENT_TAB) or object_rows.get(object_path(PARENT_TAB)) or {}
        return self.build_one(row, index, prefix="Preview", mapping=mapping,
                              name_row=parent)

    def build_from_sheet_tabs(self, tabs: Mapping[str, Sequence[Mapping[str, Any]]],
                              ids: Iterable[Any], key_field: str | None = None,
                              fail_fast: bool = True) -> BatchResult:
        """Variations for requested ids across sheet tabs.

        The ``parent`` tab must contain every id (a missing id is a
        :class:`RowNotFoundError`); other tabs contribute their matching
        row when they have one.
        """
        if PARENT_TAB not in tabs:
            raise RowError(f"Sheet tabs must include {PARENT_TAB!r}")
        result = BatchResult()
        for n, key in enumerate(ids):
            try:
                objects = {PARENT_TAB: select_row(tabs[PARENT_TAB], key,
                                                  key_field, PARENT_TAB)}
            except RowError as exc:
                if fail_fast:
                    raise
                result.failures.append(RowFailure(index=-1, key=str(key), error=exc))
                continue
            for tab, tab_rows in tabs.items():
                if tab == PARENT_TAB:
                    continue
                try:
                    objects[tab] = select_row(tab_rows, key, key_field, tab)
                except RowError:
                    result.warnings.append(
                        f"No {tab!r} row for id {key!r}; template defaults kept.")
            result.variations.append(self.build_from_objects(objects, n))
        return result
