"""
Row mapping for the joined cell query.

Rows are dicts (RealDictCursor) produced by CELL_SELECT_SQL in queries.py:
geocell_cell left-joined with location, county, district, country,
operator, band and eNB/gNB. A left join that did not match yields a block
of NULL columns, so each optional sub-entity is built only when its own
primary key column is non-null.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from shapely import wkt
from shapely.errors import ShapelyError
from shapely.geometry import Point, Polygon

from geocell_analyst.models import Band, Cell, CellPolygon, Country, County, District, Location, MccMnc

REQUIRED_CELL_FIELDS = ("cell_id", "lac_tac", "technology", "direction", "created", "modified")


class DataIntegrityError(Exception):
    pass


def _text(row: Mapping[str, Any], key: str) -> str:
    value = row.get(key)
    return "" if value is None else str(value)


def _optional_float(row: Mapping[str, Any], key: str) -> Optional[float]:
    value = row.get(key)
    return None if value is None else float(value)


def _optional_int(row: Mapping[str, Any], key: str) -> Optional[int]:
    value = row.get(key)
    return None if value is None else int(value)


def parse_point(text: Optional[str]) -> Optional[Point]:
    if not text:
        return None
    try:
        geom = wkt.loads(text)
    except ShapelyError as exc:
        raise DataIntegrityError(f"invalid point WKT: {text!r}") from exc
    if geom.geom_type != "Point":
        raise DataIntegrityError(f"expected POINT but got {geom.geom_type}")
    if geom.is_empty:
        return None
    return geom


def parse_polygon(text: Optional[str]) -> Optional[Polygon]:
    if not text:
        return None
    try:
        geom = wkt.loads(text)
    except ShapelyError as exc:
        raise DataIntegrityError(f"invalid polygon WKT: {text!r}") from exc
    if geom.geom_type != "Polygon":
        raise DataIntegrityError(f"expected POLYGON but got {geom.geom_type}")
    if geom.is_empty:
        return None
    return geom


def _country(row: Mapping[str, Any]) -> Optional[Country]:
    if row.get("country_name") is None:
        return None
    return Country(name=row["country_name"], code=row.get("country_code"))


def _district(row: Mapping[str, Any]) -> Optional[District]:
    if row.get("district_id") is None:
        return None
    return District(id=str(row["district_id"]), name=_text(row, "district_name"), country=_country(row))


def _county(row: Mapping[str, Any]) -> Optional[County]:
    if row.get("county_id") is None:
        return None
    return County(
        id=int(row["county_id"]),
        code=_text(row, "county_code"),
        name=_text(row, "county_name"),
        district=_district(row),
    )


def _location(row: Mapping[str, Any]) -> Optional[Location]:
    if row.get("location_id") is None:
        return None
    return Location(
        id=int(row["location_id"]),
        coordinates=parse_point(row.get("location_wkt")),
        address=_text(row, "address"),
        address1=_text(row, "address1"),
        zip3=_optional_int(row, "zip3"),
        zip4=_optional_int(row, "zip4"),
        postal_designation=_text(row, "postal_designation"),
        county=_county(row),
    )


def _band(row: Mapping[str, Any]) -> Optional[Band]:
    if row.get("band_id") is None:
        return None
    return Band(
        band=_text(row, "band"),
        bandwidth=_optional_float(row, "bandwidth"),
        uplink_freq=_optional_float(row, "uplink_freq"),
        downlink_freq=_optional_float(row, "downlink_freq"),
        earfcn=_optional_float(row, "earfcn"),
    )


def _mcc_mnc(row: Mapping[str, Any]) -> Optional[MccMnc]:
    if row.get("mccmnc_id") is None:
        return None
    return MccMnc(
        mcc=_optional_int(row, "mcc"),
        mnc=_optional_int(row, "mnc"),
        type=_text(row, "mccmnc_type"),
        operator=_text(row, "operator"),
        brand=_text(row, "brand"),
        status=_text(row, "operator_status"),
        bands=_text(row, "operator_bands"),
        notes=_text(row, "operator_notes"),
        country=row.get("operator_country"),
    )


def row_to_cell(row: Mapping[str, Any]) -> Cell:
    missing = [key for key in REQUIRED_CELL_FIELDS if row.get(key) is None]
    if missing:
        raise DataIntegrityError(f"cell row is missing required fields: {', '.join(missing)}")

    return Cell(
        id=int(row["cell_id"]),
        lac_tac=str(row["lac_tac"]),
        technology=int(row["technology"]),
        direction=int(row["direction"]),
        created=row["created"],
        modified=row["modified"],
        cgi=row.get("cgi"),
        paragon_cgi=_text(row, "paragon_cgi"),
        ci=row.get("ci"),
        eci_nci=_text(row, "eci_nci"),
        name=_text(row, "cell_name"),
        enb_gnb_id=_optional_int(row, "enb_gnb_id"),
        enb_gnb=_optional_int(row, "enb_gnb"),
        band=_band(row),
        location=_location(row),
        mcc_mnc=_mcc_mnc(row),
    )


def row_to_cell_polygon(row: Mapping[str, Any]) -> CellPolygon:
    if row.get("id") is None or row.get("cell_id") is None:
        raise DataIntegrityError("cell polygon row is missing id or cell_id")
    return CellPolygon(
        id=int(row["id"]),
        cell_id=int(row["cell_id"]),
        polygon=parse_polygon(row.get("polygon_wkt")),
        polygon_short=parse_polygon(row.get("polygon_short_wkt")),
    )
