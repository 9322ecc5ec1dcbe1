"""Core models - the contract between ingestion, substitution, and assembly.

Defines the typed structure of an unpacked banner template, the tier
conventions that gate row selection and field policies, the per-row
context handed to the assembler, the generated variation record, and the
job configuration that ties a run together.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from bannerbuildr.errors import ConfigError, InvalidArchiveError, MissingEntryFileError


# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

Row = Mapping[str, Any]
ColumnMapping = dict[str, str]

DEFAULT_DYNAMIC_JS = "Dynamic.js"
DEFAULT_ENTRY_FILE = "index.html"

# Every template variable lives under this object
ROOT_OBJECT = "devDynamicContent"

# Nested field that image values are written to
URL_FIELD = "Url"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Tier(Enum):
    """Data-shape convention a template and its rows follow."""
    T1 = "T1"    # rows carry a custom_offer
    T2 = "T2"    # rows carry an offerType, JSON blob fields allowed

    @property
    def column(self) -> str:
        """The column a row must fill to belong to this tier."""
        return TIER_COLUMNS[self]

    @classmethod
    def coerce(cls, value: "Tier | str") -> "Tier":
        """Accept a Tier or its code (case-insensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ConfigError(
                f"Unknown tier: {value!r}. Use 'T1' or 'T2'."
            ) from None


TIER_COLUMNS = {
    Tier.T1: "custom_offer",
    Tier.T2: "offerType",
}


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TemplateAssets:
    """An unpacked banner template.

    ``files`` maps flattened file names (directories stripped) to raw
    bytes, in archive order.  The mapping is read-only; every variation
    gets its own copy.
    """
    files: Mapping[str, bytes]
    entry_file: str
    dynamic_js_file: str | None = None

    def __post_init__(self):
        if not isinstance(self.files, MappingProxyType):
            object.__setattr__(self, "files", MappingProxyType(dict(self.files)))

    @classmethod
    def from_files(cls, files: Mapping[str, bytes]) -> "TemplateAssets":
        """Build from a name -> bytes mapping, detecting the special files.

        The first name ending in ``.html`` is the entry file; the first
        ending in ``dynamic.js`` is the Dynamic.js file (both
        case-insensitive).  Raises :class:`MissingEntryFileError` when
        there is no HTML file.
        """
        entry = next((n for n in files if n.lower().endswith(".html")), None)
        if entry is None:
            raise MissingEntryFileError()
        dynamic = next(
            (n for n in files if n.lower().endswith("dynamic.js")), None
        )
        return cls(files=files, entry_file=entry, dynamic_js_file=dynamic)

    @property
    def has_dynamic_js(self) -> bool:
        return self.dynamic_js_file is not None

    def entry_html(self) -> str:
        return self.files[self.entry_file].decode("utf-8", errors="replace")

    def dynamic_js(self) -> str | None:
        """Decoded Dynamic.js source, or None when the template has none.

        Raises :class:`InvalidArchiveError` when the file is not UTF-8.
        """
        if self.dynamic_js_file is None:
            return None
        try:
            return self.files[self.dynamic_js_file].decode("utf-8-sig")
        except UnicodeDecodeError:
            raise InvalidArchiveError(
                f"{self.dynamic_js_file} is not valid UTF-8"
            ) from None


# ---------------------------------------------------------------------------
# Per-row context and output
# ---------------------------------------------------------------------------

@dataclass
class RowContext:
    """What the assembler needs to know about the row being rendered."""
    row: Row
    index: int = 0
    prefix: str = "Variation"
    timestamp_ms: int | None = None


@dataclass(frozen=True)
class Variation:
    """One generated instance of the template."""
    name: str
    variation_id: str
    html_file: str
    width: int
    height: int
    files: Mapping[str, bytes]
    warnings: tuple[str, ...] = ()
    row_index: int = 0

    def __post_init__(self):
        if not isinstance(self.files, MappingProxyType):
            object.__setattr__(self, "files", MappingProxyType(dict(self.files)))

    def to_dict(self) -> dict:
        """Summary without file contents (what the preview grid consumes)."""
        d: dict[str, Any] = {
            "name": self.name,
            "bannerId": self.variation_id,
            "htmlFile": self.html_file,
            "width": self.width,
            "height": self.height,
        }
        if self.warnings:
            d["warnings"] = list(self.warnings)
        return d


# ---------------------------------------------------------------------------
# Job configuration
# ---------------------------------------------------------------------------

@dataclass
class SheetSource:
    """A published Google Sheet and the tabs to read from it."""
    url: str
    tabs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"url": self.url, "tabs": list(self.tabs)}

    @classmethod
    def from_dict(cls, d: dict) -> "SheetSource":
        if not d.get("url"):
            raise ConfigError("sheet.url is required")
        tabs = d.get("tabs") or []
        if isinstance(tabs, str):
            tabs = [tabs]
        return cls(url=d["url"], tabs=[str(t) for t in tabs])


@dataclass
class JobConfig:
    """Everything needed to run a generation job besides the files."""
    tier: Tier = Tier.T1
    mapping: ColumnMapping = field(default_factory=dict)
    base_asset_path: str | None = None
    key_field: str | None = None
    ids: list[str] = field(default_factory=list)
    sheet: SheetSource | None = None
    require_dynamic_js: bool = False
    max_workers: int | None = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"tier": self.tier.value}
        if self.base_asset_path:
            d["base_asset_path"] = self.base_asset_path
        if self.key_field:
            d["key_field"] = self.key_field
        if self.ids:
            d["ids"] = list(self.ids)
        if self.sheet is not None:
            d["sheet"] = self.sheet.to_dict()
        if self.require_dynamic_js:
            d["require_dynamic_js"] = True
        if self.max_workers:
            d["max_workers"] = self.max_workers
        d["mapping"] = dict(self.mapping)
        return d

    @classmethod
    def from_dict(cls, d: dict | None) -> "JobConfig":
        d = d or {}
        if not isinstance(d, dict):
            raise ConfigError("Job config must be a mapping")
        mapping = d.get("mapping") or {}
        if not isinstance(mapping, dict):
            raise ConfigError("mapping must be a field -> variable path mapping")
        sheet = d.get("sheet")
        return cls(
            tier=Tier.coerce(d.get("tier", "T1")),
            mapping={str(k): "" if v is None else str(v) for k, v in mapping.items()},
            base_asset_path=d.get("base_asset_path"),
            key_field=d.get("key_field"),
            ids=[str(i) for i in d.get("ids") or []],
            sheet=SheetSource.from_dict(sheet) if sheet else None,
            require_dynamic_js=bool(d.get("require_dynamic_js", False)),
            max_workers=d.get("max_workers"),
        )
