"""QA validator — inspects generated variations against their template.

Validates that a variation honours the generation contract: the entry
HTML file is present, every asset other than Dynamic.js is byte-identical
to the template, the TIER assignment carries the tier code, each mapped
field's assignment carries the expected value, and the ad size was read
from the template rather than defaulted.

Usage::

    from bannerbuildr.qa.validator import VariationValidator

    validator = VariationValidator(template, mapping, tier="T1")
    result = validator.validate(variation, row)
    assert result.passed, result.summary()
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from bannerbuildr.generator.assembler import DEFAULT_AD_SIZE, get_ad_size
from bannerbuildr.generator.locator import find_assignment, is_multiline
from bannerbuildr.generator.substitution import (
    TIER_PATH,
    is_blank,
    resolve_field,
)
from bannerbuildr.processor.mapper import normalize_mapping
from bannerbuildr.schema.literals import parse_js_string
from bannerbuildr.schema.models import (
    DEFAULT_DYNAMIC_JS,
    TemplateAssets,
    Tier,
    Variation,
)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class Issue:
    """A single QA issue found during validation."""
    severity: str       # "error" or "warning"
    variation: str      # variation name
    category: str       # e.g. "entry_file", "asset_changed", "tier", "field"
    message: str

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.variation}: {self.message}"


@dataclass
class QAResult:
    """Aggregated result of QA validation."""
    issues: list[Issue] = field(default_factory=list)

    @property
    def errors(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def extend(self, other: "QAResult") -> None:
        self.issues.extend(other.issues)

    def summary(self) -> str:
        """One-line summary string."""
        status = "PASS" if self.passed else "FAIL"
        return (
            f"QA {status}: {self.error_count} error(s), "
            f"{self.warning_count} warning(s)"
        )

    def report(self) -> str:
        """Multi-line report of all issues."""
        lines = [self.summary()]
        for issue in self.issues:
            lines.append(f"  {issue}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _decoded_value(source: str, path: str) -> str | None:
    """Evaluated string value of the first assignment to ``path``."""
    match = find_assignment(source, path)
    if match is None:
        return None
    try:
        return parse_js_string(match.value)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# VariationValidator
# ---------------------------------------------------------------------------

class VariationValidator:
    """Validates generated variations against the template they came from.

    Parameters
    ----------
    template : TemplateAssets
        The template the variations were generated from.
    mapping : dict
        The column mapping used for generation.
    tier : Tier or str
    base_asset_path : str, optional
    """

    def __init__(self, template: TemplateAssets,
                 mapping: Mapping[str, str] | None, tier: Tier | str,
                 base_asset_path: str | None = None) -> None:
        self.template = template
        self.mapping = normalize_mapping(mapping)
        self.tier = Tier.coerce(tier)
        self.base_asset_path = base_asset_path

    def validate(self, variation: Variation,
                 row: Mapping[str, Any] | None = None) -> QAResult:
        """Run all checks on one variation.

        Field checks need the ``row`` the variation was generated from and
        are skipped without it.
        """
        result = QAResult()
        self._check_entry_file(variation, result)
        self._check_assets(variation, result)
        self._check_size(variation, result)

        source = self._dynamic_js(variation)
        if source is None:
            if self.template.has_dynamic_js:
                self._add(result, "error", variation, "dynamic_js",
                          "Dynamic.js missing from variation")
            return result

        self._check_tier(variation, source, result)
        if row is not None:
            self._check_fields(variation, source, row, result)
        return result

    def validate_all(self, pairs: Iterable[tuple[Variation, Mapping[str, Any] | None]]
                     ) -> QAResult:
        """Validate several ``(variation, row)`` pairs into one result."""
        combined = QAResult()
        for variation, row in pairs:
            combined.extend(self.validate(variation, row))
        return combined

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _add(self, result: QAResult, severity: str, variation: Variation,
             category: str, message: str) -> None:
        result.issues.append(Issue(severity, variation.name, category, message))

    def _dynamic_js_name(self) -> str:
        return self.template.dynamic_js_file or DEFAULT_DYNAMIC_JS

    def _dynamic_js(self, variation: Variation) -> str | None:
        data = variation.files.get(self._dynamic_js_name())
        if data is None:
            return None
        return data.decode("utf-8-sig")

    def _check_entry_file(self, variation: Variation, result: QAResult) -> None:
        if variation.html_file not in variation.files:
            self._add(result, "error", variation, "entry_file",
                      f"Entry file {variation.html_file!r} missing from variation")

    def _check_assets(self, variation: Variation, result: QAResult) -> None:
        dynamic = self._dynamic_js_name()
        for name, content in self.template.files.items():
            if name == dynamic:
                continue
            if name not in variation.files:
                self._add(result, "error", variation, "asset_missing",
                          f"Asset {name!r} missing from variation")
            elif variation.files[name] != content:
                self._add(result, "error", variation, "asset_changed",
                          f"Asset {name!r} differs from the template")

    def _check_size(self, variation: Variation, result: QAResult) -> None:
        html = variation.files.get(variation.html_file, b"").decode(
            "utf-8", errors="replace")
        expected = get_ad_size(html)
        if (variation.width, variation.height) != expected:
            self._add(result, "error", variation, "size",
                      f"Size {variation.width}x{variation.height} does not match "
                      f"ad.size meta tag {expected[0]}x{expected[1]}")
        elif expected == DEFAULT_AD_SIZE and "ad.size" not in html:
            self._add(result, "warning", variation, "size",
                      "No ad.size meta tag; using default 300x250")

    def _check_tier(self, variation: Variation, source: str,
                    result: QAResult) -> None:
        if find_assignment(source, TIER_PATH) is None:
            return
        actual = _decoded_value(source, TIER_PATH)
        if actual != self.tier.value:
            self._add(result, "error", variation, "tier",
                      f"TIER is {actual!r}, expected {self.tier.value!r}")

    def _check_fields(self, variation: Variation, source: str,
                      row: Mapping[str, Any], result: QAResult) -> None:
        # Later fields overwrite earlier ones on a shared target
        expected_by_target: dict[str, str] = {}
        for field_name, path in self.mapping.items():
            if path == TIER_PATH:
                continue
            value = row.get(field_name)
            if is_blank(value):
                continue
            target, literal, _policy = resolve_field(
                field_name, path, value, self.tier, self.base_asset_path)
            expected_by_target[target] = literal

        for target, literal in expected_by_target.items():
            match = find_assignment(source, target)
            if match is None:
                self._add(result, "warning", variation, "field_missing",
                          f'"{target}" is not assigned in Dynamic.js')
                continue
            if is_multiline(match):
                self._add(result, "warning", variation, "field_multiline",
                          f'"{target}" spans several lines and was not rewritten')
                continue
            expected = parse_js_string(literal)
            actual = _decoded_value(source, target)
            if actual != expected:
                self._add(result, "error", variation, "field",
                          f'"{target}" is {actual!r}, expected {expected!r}')


def validate_variations(template: TemplateAssets, mapping: Mapping[str, str] | None,
                        tier: Tier | str,
                        pairs: Iterable[tuple[Variation, Mapping[str, Any] | None]],
                        base_asset_path: str | None = None) -> QAResult:
    """Convenience wrapper around :class:`VariationValidator`."""
    validator = VariationValidator(template, mapping, tier, base_asset_path)
    return validator.validate_all(pairs)
