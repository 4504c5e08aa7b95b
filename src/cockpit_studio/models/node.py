"""Domain models for the cockpit document tree."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class Status(StrEnum):
    """Tile status.

    The first five values are severities (see ``core.status.resolver``).
    ``information`` ranks just above ``ok`` in rollups, and the two
    ``inherited`` values are placeholders resolved from other nodes at read time.
    """

    OK = "ok"
    DISCONNECTED = "disconnected"
    MINOR = "minor"
    CRITICAL = "critical"
    FATAL = "fatal"
    INFORMATION = "information"
    INHERITED = "inherited"
    INHERITED_DOMAIN = "inherited_domain"

    @classmethod
    def parse(cls, value: "str | Status") -> "Status":
        """Convert a stored status string, accepting legacy French names."""
        if isinstance(value, Status):
            return value
        key = str(value).strip().lower()
        key = _LEGACY_STATUS_NAMES.get(key, key)
        return cls(key)


_LEGACY_STATUS_NAMES = {
    "critique": "critical",
    "mineur": "minor",
    "deconnecte": "disconnected",
    "herite": "inherited",
    "herite_domaine": "inherited_domain",
}


class TemplateType(StrEnum):
    """Display template of a domain."""

    STANDARD = "standard"
    GRID = "grid"
    MAP = "map"
    BACKGROUND = "background"
    ELEMENT = "element"
    HOURS_TRACKING = "hours-tracking"
    ALERTS = "alerts"
    STATS = "stats"
    LIBRARY = "library"
    DATA_HISTORY = "data-history"


class Orientation(StrEnum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class NodeKind(StrEnum):
    """Kind of node held in the document tree."""

    COCKPIT = "cockpit"
    DOMAIN = "domain"
    CATEGORY = "category"
    ELEMENT = "element"
    SUB_CATEGORY = "sub_category"
    SUB_ELEMENT = "sub_element"
    ZONE = "zone"
    MAP_ELEMENT = "map_element"


@dataclass
class GpsCoords:
    """Decimal-degree coordinates."""

    lat: float
    lng: float


@dataclass
class MapBounds:
    """GPS position of the corners of a map background image."""

    top_left: GpsCoords | None = None
    bottom_right: GpsCoords | None = None


@dataclass
class Alert:
    """Incident record attached to a sub-element."""

    id: str
    sub_element_id: str
    date: str
    description: str
    duration: str | None = None
    ticket_number: str | None = None
    actions: str | None = None


@dataclass
class SubElement:
    """Addressable tile at the bottom of the hierarchy."""

    id: str
    sub_category_id: str
    name: str
    status: Status = Status.OK
    order: int = 0
    value: str | None = None
    unit: str | None = None
    icon: str | None = None
    linked_group_id: str | None = None
    alert: Alert | None = None
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class SubCategory:
    """Grouping of sub-elements inside an element."""

    id: str
    element_id: str
    name: str
    orientation: Orientation = Orientation.HORIZONTAL
    order: int = 0
    icon: str | None = None
    sub_elements: list[SubElement] = field(default_factory=list)
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class Element:
    """Main tile of a category."""

    id: str
    category_id: str
    name: str
    status: Status = Status.OK
    order: int = 0
    value: str | None = None
    unit: str | None = None
    icon: str | None = None
    icon2: str | None = None
    icon3: str | None = None
    zone: str | None = None
    template: str | None = None
    publiable: bool = True
    linked_group_id: str | None = None
    inherit_from_domain_id: str | None = None
    position_x: float | None = None
    position_y: float | None = None
    width: float | None = None
    height: float | None = None
    background_image: str | None = None
    sub_categories: list[SubCategory] = field(default_factory=list)
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class Category:
    """Grouping of elements inside a domain."""

    id: str
    domain_id: str
    name: str
    orientation: Orientation = Orientation.HORIZONTAL
    order: int = 0
    icon: str | None = None
    elements: list[Element] = field(default_factory=list)
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class MapElement:
    """A geolocated point on a map-style domain."""

    id: str
    domain_id: str
    name: str
    gps: GpsCoords
    status: Status = Status.OK
    icon: str | None = None
    element_id: str | None = None
    linked_group_id: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class Domain:
    """A tab of the cockpit."""

    id: str
    cockpit_id: str
    name: str
    order: int = 0
    template_type: TemplateType = TemplateType.STANDARD
    icon: str | None = None
    template_name: str | None = None
    background_image: str | None = None
    map_bounds: MapBounds | None = None
    enable_clustering: bool = True
    publiable: bool = True
    categories: list[Category] = field(default_factory=list)
    map_elements: list[MapElement] = field(default_factory=list)
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class Zone:
    """Named zone used to sort elements."""

    id: str
    cockpit_id: str
    name: str
    icon: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class Snapshot:
    """Historical status and value of one synchronization key at one date.

    ``status`` is None only for snapshots read from an incomplete record.
    """

    status: Status | None
    value: str | None = None
    unit: str | None = None
    alert_description: str | None = None


@dataclass
class HistoryColumn:
    """All snapshots taken at one date."""

    date: str
    label: str | None = None
    data: dict[str, Snapshot] = field(default_factory=dict)


@dataclass
class Cockpit:
    """The document: one dashboard and everything it owns."""

    id: str
    name: str
    domains: list[Domain] = field(default_factory=list)
    zones: list[Zone] = field(default_factory=list)
    logo: str | None = None
    scrolling_banner: str | None = None
    history_columns: list[HistoryColumn] = field(default_factory=list)
    # Keys of the stored history record other than its columns.
    history_extras: dict[str, Any] = field(default_factory=dict)
    selected_data_date: str | None = None
    updated_at: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)


Node = Cockpit | Domain | Category | Element | SubCategory | SubElement | Zone | MapElement

KIND_BY_TYPE: dict[type, NodeKind] = {
    Cockpit: NodeKind.COCKPIT,
    Domain: NodeKind.DOMAIN,
    Category: NodeKind.CATEGORY,
    Element: NodeKind.ELEMENT,
    SubCategory: NodeKind.SUB_CATEGORY,
    SubElement: NodeKind.SUB_ELEMENT,
    Zone: NodeKind.ZONE,
    MapElement: NodeKind.MAP_ELEMENT,
}


def kind_of(node: Node) -> NodeKind:
    return KIND_BY_TYPE[type(node)]


@dataclass(frozen=True)
class EffectiveData:
    """What a tile should show for the selected date."""

    status: Status
    value: str | None
    unit: str | None
    alert_description: str | None
    is_from_history: bool


@dataclass(frozen=True)
class ExportRow:
    """One leaf of the cockpit, flattened for spreadsheet export."""

    domain: str
    category: str
    element: str
    sub_category: str | None
    sub_element: str | None
    value: str | None
    unit: str | None
    status: Status
    order: int
