from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Iterator, Optional

OCCURRENCE_SEPARATOR = "__occ"
UNKNOWN_PLACEHOLDER = "Unknown"


# ── Settings ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MergeSettings:
    identifier_column: str = "Asset number"
    status_column: str = "Done?"
    done_marker: str = "Yes"
    not_done_marker: str = "No"
    no_lube_point_marker: str = "Nlp"
    case_insensitive: bool = False
    preserve_order: bool = True
    page_placeholder: str = UNKNOWN_PLACEHOLDER
    max_column_occurrences: int = 12
    client_name: str = "Lubrication-Schedule"

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]


# ── Status vocabulary ─────────────────────────────────────────────────────

STATUS_NOT_ACCESSIBLE = "Not Accessible"
STATUS_NOT_FOUND = "Not Found"
STATUS_NO_LUBE_POINT = "NLP"
STATUS_QUESTION = "Question"
STATUS_OUT_OF_SCOPE = "Out of scope"

# (label, "contains" needles, "equals" needles), first match wins.
# Needles are lower-case and compared against the lower-cased raw value.
STATUS_RULES = (
    (STATUS_NOT_ACCESSIBLE, ("not accessible", "non accessible"), ()),
    (STATUS_NOT_FOUND, ("not found", "pas trouvé"), ()),
    (STATUS_NO_LUBE_POINT, (), ("nlp",)),
    (STATUS_QUESTION, ("question",), ()),
    (STATUS_OUT_OF_SCOPE, ("out of scope", "hors scope", "obsolete"), ()),
)

SAMPLED_NEEDLES = ("sampl", "échantillon", "echantillon")


# ── Criticality ───────────────────────────────────────────────────────────

CRITICAL_COLUMN = "CRITICAL"
CRITICAL_NUMBER_COLUMN = "CRIT #"
COMPLICATED_COLUMN = "Complicated"
CRITICAL_SENTINEL = "C"
COMPLICATED_MARKER = "complicated"

CRITICALITY_CRITICAL = "Critical"
CRITICALITY_COMPLICATED = "Complicated"
CRITICALITY_BOTH = "Critical & Complicated"


# ── Environmental conditions ──────────────────────────────────────────────

# Also the order of the condition columns in every export.
CONDITION_CATEGORIES = ("particle", "moisture", "vibration", "orientation", "temperature", "runtime")

# (short code, literal value, category); the literal doubles as the label.
CONDITION_MARKERS = (
    ("PMILD", "Particle Mild", "particle"),
    ("PHVY", "Particle Heavy", "particle"),
    ("MMOD", "Moisture Moderate", "moisture"),
    ("MHVY", "Moisture Heavy", "moisture"),
    ("VHVY", "Vibration Heavy", "vibration"),
    ("HORIZ", "Horizontal", "orientation"),
    ("VERT", "Vertical", "orientation"),
    ("EHR", ">=16 hrs/day", "runtime"),
    ("SHR", "<=8 hrs/day", "runtime"),
    ("L80", "<80°C", "temperature"),
    ("H80", ">=80°C", "temperature"),
)

CONDITION_LOOKUP: dict[str, tuple[str, str]] = {}
for _code, _label, _category in CONDITION_MARKERS:
    CONDITION_LOOKUP[_label] = (_category, _label)
    CONDITION_LOOKUP[_code] = (_category, _label)


# ── Feature flags (column holds "1" when present) ─────────────────────────

FEATURE_COLUMNS = (
    ("variable_speed", "Variable speed"),
    ("flow_stop", "Flow stop"),
    ("relief", "Relief"),
    ("piping_required", "Piping required"),
    ("piping_exists", "Piping exists"),
    ("autoluber", "Autoluber needed"),
    ("bsw", "BS&W"),
    ("cooler", "Cooler"),
    ("motor", "Motor"),
    ("filter", "Filter(s)"),
    ("frl", "FRL"),
    ("heater", "Heater"),
    ("qc", "QC's"),
    ("no_modifications", "No modifications required"),
)
FEATURE_TRUE = "1"


# ── Descriptive columns ───────────────────────────────────────────────────

AREA_COLUMN = "Area"
COMMENT_COLUMN = "Comment/Question"
COMPONENT_COLUMN = "Component"

TEXT_DETAIL_COLUMNS = {
    "area": AREA_COLUMN,
    "asset_description": "Asset description",
    "component": COMPONENT_COLUMN,
    "sub_component": "Sub-Component",
    "current_lubricant": "Current Lubricant",
    "recommended_lubricant": "Recommended Lubricant",
    "lubricant_lis": "Recommended Lubricant LIS Number",
    "procedure_number": "Procedure #",
    "procedure": "Procedure",
    "sub_task_1": "Sub Task 1",
    "sub_task_2": "Sub Task 2",
    "measured_task_1": "Measured Task 1",
    "measured_task_2": "Measured Task 2",
    "operation_status": "Operation Status",
    "component_class": "Component Class",
    "unit": "Unit",
    "comment": COMMENT_COLUMN,
    "user": "User",
    "date_time": "Date/Time",
    "idem_to": "*Idem to",
    "unique_row_id": "UniqueRowID",
}

INTEGER_DETAIL_COLUMNS = {
    "number_of_points": "# of Points",
    "time_interval_days": "Time Interval (days)",
    "required_time_min": "Required Time (min)",
}

DECIMAL_DETAIL_COLUMNS = {
    "recommended_quantity": "Recommended Quantity",
}


# ── Schema ────────────────────────────────────────────────────────────────

def make_internal_key(display_name: str, occurrence_index: int) -> str:
    return f"{display_name}{OCCURRENCE_SEPARATOR}{occurrence_index}"


@dataclass(frozen=True)
class ColumnDescriptor:
    display_name: str
    occurrence_index: int
    internal_key: str


@dataclass(frozen=True)
class Schema:
    """Ordered, immutable set of column descriptors for one pipeline run."""

    columns: tuple[ColumnDescriptor, ...] = ()

    def __iter__(self) -> Iterator[ColumnDescriptor]:
        return iter(self.columns)

    def __len__(self) -> int:
        return len(self.columns)

    def keys(self) -> list[str]:
        return [column.internal_key for column in self.columns]

    def display_names(self) -> list[str]:
        return [column.display_name for column in self.columns]

    def find(self, display_name: str, occurrence: int = 1) -> Optional[ColumnDescriptor]:
        wanted = display_name.strip()
        for column in self.columns:
            if column.display_name.strip() == wanted and column.occurrence_index == occurrence:
                return column
        return None

    def has_column(self, display_name: str) -> bool:
        return self.find(display_name) is not None


# ── Classified record ─────────────────────────────────────────────────────

@dataclass
class ClassifiedRecord:
    record: dict[str, str]
    identifier: str = ""
    raw_status: str = ""
    status: str = ""
    is_done: bool = False
    is_critical: bool = False
    is_complicated: bool = False
    criticality: str = ""
    conditions: dict[str, str] = field(default_factory=dict)
    features: dict[str, bool] = field(default_factory=dict)
    details: dict[str, object] = field(default_factory=dict)
    components: list[str] = field(default_factory=list)
    page_number: Optional[int] = None

    def detail(self, name: str) -> str:
        value = self.details.get(name)
        return "" if value is None else str(value)
