from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from shapely.geometry import Point, Polygon

TECHNOLOGY_NAMES: Dict[int, str] = {
    2: "2G",
    3: "3G",
    4: "4G",
    5: "5G",
    10: "NR-IoT",
}

TECHNOLOGY_CODES: Dict[str, int] = {name.upper(): code for code, name in TECHNOLOGY_NAMES.items()}


def technology_name(code: Optional[int]) -> str:
    return TECHNOLOGY_NAMES.get(code, "Unknown")


def icon_heading(direction: int) -> int:
    # The tower icon points south; shift by 180 so it follows the antenna bearing.
    return (direction - 180) % 360


@dataclass
class Country:
    name: str
    code: Optional[str] = None


@dataclass
class District:
    id: str
    name: str = ""
    country: Optional[Country] = None


@dataclass
class County:
    id: int
    code: str = ""
    name: str = ""
    district: Optional[District] = None


@dataclass
class Location:
    id: int
    coordinates: Optional[Point] = None
    address: str = ""
    address1: str = ""
    zip3: Optional[int] = None
    zip4: Optional[int] = None
    postal_designation: str = ""
    county: Optional[County] = None

    @property
    def latitude(self) -> Optional[float]:
        return self.coordinates.y if self.coordinates is not None else None

    @property
    def longitude(self) -> Optional[float]:
        return self.coordinates.x if self.coordinates is not None else None


@dataclass
class Band:
    band: str = ""
    bandwidth: Optional[float] = None
    uplink_freq: Optional[float] = None
    downlink_freq: Optional[float] = None
    earfcn: Optional[float] = None


@dataclass
class MccMnc:
    mcc: Optional[int] = None
    mnc: Optional[int] = None
    type: str = ""
    operator: str = ""
    brand: str = ""
    status: str = ""
    bands: str = ""
    notes: str = ""
    country: Optional[str] = None


@dataclass
class CellPolygon:
    id: int
    cell_id: int
    polygon: Optional[Polygon] = None
    polygon_short: Optional[Polygon] = None


@dataclass
class Cell:
    id: int
    lac_tac: str
    technology: int
    direction: int
    created: date
    modified: date
    cgi: Optional[str] = None
    paragon_cgi: str = ""
    ci: Optional[str] = None
    eci_nci: str = ""
    name: str = ""
    enb_gnb_id: Optional[int] = None
    enb_gnb: Optional[int] = None
    band: Optional[Band] = None
    location: Optional[Location] = None
    mcc_mnc: Optional[MccMnc] = None
    color: Optional[str] = None
    target: Optional[str] = None
    notes: Optional[str] = None
    distance_from_reference: Optional[float] = None

    @property
    def lookup_key(self) -> Optional[str]:
        return self.cgi or self.paragon_cgi or None

    @property
    def coordinates(self) -> Optional[Point]:
        return self.location.coordinates if self.location is not None else None

    @property
    def brand(self) -> Optional[str]:
        return self.mcc_mnc.brand if self.mcc_mnc is not None and self.mcc_mnc.brand else None


@dataclass
class CsvRecord:
    timestamp: str
    cgi: str
    color: Optional[str]
    target: Optional[str]
    notes: Optional[str]


@dataclass
class CsvData:
    color: Optional[str] = None
    target: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class FilterParams:
    technologies: List[int] = field(default_factory=list)
    operators: List[str] = field(default_factory=list)
    same_network: bool = False
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    def validate(self) -> "FilterParams":
        for label, value in (("start date", self.start_date), ("end date", self.end_date)):
            if value:
                try:
                    date.fromisoformat(value)
                except ValueError as exc:
                    raise ValueError(f"{label} must be YYYY-MM-DD, got {value!r}") from exc
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start date must not be after end date")
        return self

    def describe(self) -> List[str]:
        lines = []
        if self.technologies:
            lines.append("Technologies: " + ", ".join(technology_name(t) for t in self.technologies))
        if self.operators:
            lines.append("Operators: " + ", ".join(self.operators))
        if self.same_network:
            lines.append("Same network only: Yes")
        if self.start_date or self.end_date:
            lines.append(f"Date range: {self.start_date or 'Any'} to {self.end_date or 'Any'}")
        return lines
