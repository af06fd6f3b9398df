"""
Cell queries against the geocell_* PostGIS tables.

Every query shape runs in two phases: a find step that applies the shape's
spatial or attribute predicate plus the shared filters and returns matching
cell ids (capped at RESULT_LIMIT), then a hydrate step that re-reads those
ids through the full left-joined CELL_SELECT_SQL and maps them to Cell
objects. Only the predicates differ per shape.

Database failures never leave CellRepository: they are logged and returned
as a QueryResult carrying a QueryError, so callers can tell "no matches"
apart from "query failed". Invalid arguments raise ValueError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Sequence, Tuple, TypeVar

import psycopg2

from geocell_analyst.db import Database, fetch_all
from geocell_analyst.mapper import DataIntegrityError, row_to_cell, row_to_cell_polygon
from geocell_analyst.models import Cell, CellPolygon, FilterParams

logger = logging.getLogger(__name__)

RESULT_LIMIT = 1000

T = TypeVar("T")
Conditions = Tuple[List[str], List[Any]]

CELL_JOINS_SQL = """
FROM geocell_cell c
LEFT JOIN geocell_location l ON l.id = c.location_id
LEFT JOIN geocell_county co ON co.id = l.id_county_id
LEFT JOIN geocell_district d ON d.id = co.district_id
LEFT JOIN geocell_country ct ON ct.name = d.country_id
LEFT JOIN geocell_mccmnc m ON m.mnc = c.mcc_mnc_id
LEFT JOIN geocell_band b ON b.id = c.band_id
LEFT JOIN geocell_enbgnb e ON e.id = c.enb_gnb_id
"""

CELL_SELECT_SQL = (
    """
SELECT
  c.id AS cell_id, c.lac_tac, c.ci, c.eci_nci, c.cgi, c.paragon_cgi,
  c.technology, c.direction, c.name AS cell_name, c.created, c.modified,
  c.enb_gnb_id, e.enb_gnb,
  l.id AS location_id, ST_AsText(l.coordinates) AS location_wkt,
  l.address, l.address1, l.zip3, l.zip4, l.postal_designation,
  co.id AS county_id, co.id_county AS county_code, co.county AS county_name,
  d.id AS district_id, d.district AS district_name,
  ct.name AS country_name, ct.code AS country_code,
  m.id AS mccmnc_id, m.mcc, m.mnc, m.type AS mccmnc_type, m.operator, m.brand,
  m.status AS operator_status, m.bands AS operator_bands, m.notes AS operator_notes,
  m.country_id AS operator_country,
  b.id AS band_id, b.band, b.bandwidth, b.uplink_freq, b.downlink_freq, b.earfcn
"""
    + CELL_JOINS_SQL
)

REFERENCE_POINT_SQL = "ST_SetSRID(ST_MakePoint(%s, %s), 4326)::geography"

CELL_POLYGONS_SQL = """
SELECT id, cell_id, ST_AsText(polygon) AS polygon_wkt, ST_AsText(polygon_short) AS polygon_short_wkt
FROM geocell_cellpolygon
WHERE cell_id = ANY(%s)
ORDER BY cell_id, id;
"""

DISTRICTS_SQL = "SELECT district FROM geocell_district ORDER BY district;"

COUNTIES_SQL = """
SELECT co.county
FROM geocell_county co
JOIN geocell_district d ON d.id = co.district_id
WHERE d.district = %s
ORDER BY co.county;
"""

BRANDS_SQL = """
SELECT DISTINCT brand
FROM geocell_mccmnc
WHERE brand IS NOT NULL AND brand <> ''
ORDER BY brand;
"""


@dataclass
class QueryError:
    operation: str
    message: str


@dataclass
class QueryResult(Generic[T]):
    value: T
    error: Optional[QueryError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------- predicates


def filter_conditions(filters: FilterParams) -> Conditions:
    conditions: List[str] = []
    params: List[Any] = []
    if filters.technologies:
        conditions.append("c.technology IN %s")
        params.append(tuple(int(t) for t in filters.technologies))
    if filters.operators:
        conditions.append("UPPER(m.brand) IN %s")
        params.append(tuple(op.strip().upper() for op in filters.operators))
    if filters.start_date:
        conditions.append("c.created >= %s")
        params.append(filters.start_date)
    if filters.end_date:
        conditions.append("c.created <= %s")
        params.append(filters.end_date)
    return conditions, params


def within_distance_condition(lon: float, lat: float, radius_km: float) -> Conditions:
    return (
        [
            "l.coordinates IS NOT NULL",
            f"ST_DWithin(l.coordinates::geography, {REFERENCE_POINT_SQL}, %s)",
        ],
        [lon, lat, radius_km * 1000.0],
    )


def envelope_condition(lat1: float, lon1: float, lat2: float, lon2: float) -> Conditions:
    min_lon, max_lon = min(lon1, lon2), max(lon1, lon2)
    min_lat, max_lat = min(lat1, lat2), max(lat1, lat2)
    return (
        ["ST_Within(l.coordinates, ST_MakeEnvelope(%s, %s, %s, %s, 4326))"],
        [min_lon, min_lat, max_lon, max_lat],
    )


def merge_conditions(*parts: Conditions) -> Conditions:
    conditions: List[str] = []
    params: List[Any] = []
    for part_conditions, part_params in parts:
        conditions.extend(part_conditions)
        params.extend(part_params)
    return conditions, params


def build_find_ids_sql(
    conditions: Sequence[str],
    params: Sequence[Any],
    *,
    distance_from: Optional[Tuple[float, float]] = None,
    limit: int = RESULT_LIMIT,
) -> Tuple[str, Tuple[Any, ...]]:
    where = " AND ".join(f"({c})" for c in conditions) if conditions else "TRUE"
    if distance_from is not None:
        lon, lat = distance_from
        sql = (
            f"SELECT c.id AS cell_id, ST_Distance(l.coordinates::geography, {REFERENCE_POINT_SQL}) AS distance_m"
            f"{CELL_JOINS_SQL}WHERE {where}\nORDER BY distance_m, c.id\nLIMIT %s;"
        )
        return sql, (lon, lat, *params, limit)
    sql = f"SELECT DISTINCT c.id AS cell_id{CELL_JOINS_SQL}WHERE {where}\nORDER BY c.id\nLIMIT %s;"
    return sql, (*params, limit)


# ------------------------------------------------------------ cursor helpers


def find_cell_ids(
    cur,
    conditions: Sequence[str],
    params: Sequence[Any],
    *,
    distance_from: Optional[Tuple[float, float]] = None,
) -> List[Tuple[int, Optional[float]]]:
    sql, all_params = build_find_ids_sql(conditions, params, distance_from=distance_from)
    rows = fetch_all(cur, sql, all_params)
    return [(int(row["cell_id"]), row.get("distance_m")) for row in rows]


def hydrate_cells(cur, cell_ids: Sequence[int]) -> Dict[int, Cell]:
    if not cell_ids:
        return {}
    rows = fetch_all(cur, CELL_SELECT_SQL + "WHERE c.id = ANY(%s);", (list(cell_ids),))
    cells = [row_to_cell(row) for row in rows]
    return {cell.id: cell for cell in cells}


def fetch_cells_by_keys(cur, keys: Iterable[str]) -> Dict[str, Cell]:
    """
    Batch lookup by CGI with paragon CGI as the fallback key.

    The result is keyed by the identifier the caller asked for. A direct CGI
    match always wins over a paragon CGI match for the same key; keys that
    match nothing are simply absent.
    """
    wanted = [k for k in dict.fromkeys(keys) if k]
    if not wanted:
        return {}
    rows = fetch_all(
        cur,
        CELL_SELECT_SQL + "WHERE c.cgi = ANY(%s) OR c.paragon_cgi = ANY(%s)\nORDER BY c.id;",
        (wanted, wanted),
    )
    wanted_set = set(wanted)
    cells = [row_to_cell(row) for row in rows]
    by_key: Dict[str, Cell] = {}
    for cell in cells:
        if cell.cgi in wanted_set and cell.cgi not in by_key:
            by_key[cell.cgi] = cell
    for cell in cells:
        if cell.paragon_cgi in wanted_set and cell.paragon_cgi not in by_key:
            by_key[cell.paragon_cgi] = cell
    return by_key


def fetch_cell_polygons(cur, cell_ids: Sequence[int]) -> Dict[int, List[CellPolygon]]:
    if not cell_ids:
        return {}
    polygons: Dict[int, List[CellPolygon]] = {}
    for row in fetch_all(cur, CELL_POLYGONS_SQL, (list(cell_ids),)):
        polygon = row_to_cell_polygon(row)
        polygons.setdefault(polygon.cell_id, []).append(polygon)
    return polygons


# ---------------------------------------------------------------- repository


class CellRepository:
    def __init__(self, db: Database):
        self._db = db

    def _run(self, operation: str, fallback: T, work: Callable[[Any], T]) -> QueryResult[T]:
        try:
            with self._db.cursor() as cur:
                value = work(cur)
        except (psycopg2.Error, DataIntegrityError) as exc:
            logger.exception("%s failed", operation)
            return QueryResult(fallback, QueryError(operation, str(exc).strip() or exc.__class__.__name__))
        return QueryResult(value)

    def _find(
        self,
        operation: str,
        conditions: Conditions,
        *,
        distance_from: Optional[Tuple[float, float]] = None,
    ) -> QueryResult[List[Cell]]:
        where, params = conditions

        def work(cur) -> List[Cell]:
            hits = find_cell_ids(cur, where, params, distance_from=distance_from)
            cells = hydrate_cells(cur, [cell_id for cell_id, _ in hits])
            ordered = []
            for cell_id, distance_m in hits:
                cell = cells.get(cell_id)
                if cell is None:
                    continue
                if distance_m is not None:
                    cell.distance_from_reference = float(distance_m) / 1000.0
                ordered.append(cell)
            return ordered

        result = self._run(operation, [], work)
        if result.ok:
            logger.info("%s: %d cell(s)", operation, len(result.value))
            if len(result.value) >= RESULT_LIMIT:
                logger.warning("%s: result capped at %d rows", operation, RESULT_LIMIT)
        return result

    def get_cell_by_cgi(self, cgi: str) -> QueryResult[Optional[Cell]]:
        key = cgi.strip()
        return self._run("get_cell_by_cgi", None, lambda cur: fetch_cells_by_keys(cur, [key]).get(key))

    def cells_by_cgi_list(self, cgis: Iterable[str]) -> QueryResult[Dict[str, Cell]]:
        keys = [c.strip() for c in cgis if c and c.strip()]
        result = self._run("cells_by_cgi_list", {}, lambda cur: fetch_cells_by_keys(cur, keys))
        if result.ok:
            missing = len(set(keys)) - len(result.value)
            if missing:
                logger.info("cells_by_cgi_list: %d of %d CGI(s) not found", missing, len(set(keys)))
        return result

    def cell_polygons(self, cell_ids: Iterable[int]) -> QueryResult[Dict[int, List[CellPolygon]]]:
        ids = sorted(set(cell_ids))
        return self._run("cell_polygons", {}, lambda cur: fetch_cell_polygons(cur, ids))

    def neighbor_cells(
        self,
        cgi: str,
        radius_km: float,
        technologies: Sequence[int] = (),
        operators: Sequence[str] = (),
        same_network: bool = False,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> QueryResult[List[Cell]]:
        if not cgi or not cgi.strip():
            raise ValueError("Reference CGI cannot be empty")
        if radius_km <= 0:
            raise ValueError("Radius must be greater than 0")
        filters = FilterParams(
            technologies=list(technologies),
            operators=list(operators),
            same_network=same_network,
            start_date=start_date,
            end_date=end_date,
        ).validate()

        lookup = self.get_cell_by_cgi(cgi)
        if not lookup.ok:
            return QueryResult([], lookup.error)
        reference = lookup.value
        if reference is None:
            raise ValueError(f"Reference cell {cgi.strip()} not found")
        if reference.coordinates is None:
            raise ValueError(f"Reference cell {cgi.strip()} has no coordinates")

        lon, lat = reference.coordinates.x, reference.coordinates.y
        exclusion: Conditions = (
            ["c.id <> %s", "c.cgi IS DISTINCT FROM %s", "c.paragon_cgi IS DISTINCT FROM %s"],
            [reference.id, cgi.strip(), cgi.strip()],
        )
        parts = [within_distance_condition(lon, lat, radius_km), exclusion, filter_conditions(filters)]
        if same_network:
            if reference.brand:
                parts.append((["UPPER(m.brand) = %s"], [reference.brand.upper()]))
            else:
                logger.warning("Reference cell %s has no operator brand; same-network filter ignored", cgi)
        return self._find("neighbor_cells", merge_conditions(*parts), distance_from=(lon, lat))

    def cells_in_circle(
        self, center_lat: float, center_lon: float, radius_km: float, filters: Optional[FilterParams] = None
    ) -> QueryResult[List[Cell]]:
        if radius_km <= 0:
            raise ValueError("Radius must be greater than 0")
        filters = (filters or FilterParams()).validate()
        return self._find(
            "cells_in_circle",
            merge_conditions(within_distance_condition(center_lon, center_lat, radius_km), filter_conditions(filters)),
        )

    def cells_in_rectangle(
        self, lat1: float, lon1: float, lat2: float, lon2: float, filters: Optional[FilterParams] = None
    ) -> QueryResult[List[Cell]]:
        filters = (filters or FilterParams()).validate()
        return self._find(
            "cells_in_rectangle",
            merge_conditions(envelope_condition(lat1, lon1, lat2, lon2), filter_conditions(filters)),
        )

    def cells_in_administrative_region(
        self, district: Optional[str], county: str, filters: Optional[FilterParams] = None
    ) -> QueryResult[List[Cell]]:
        if not county or not county.strip():
            raise ValueError("County cannot be empty")
        filters = (filters or FilterParams()).validate()
        region: Conditions = (["co.county = %s"], [county.strip()])
        if district and district.strip():
            region = merge_conditions(region, (["d.district = %s"], [district.strip()]))
        return self._find("cells_in_administrative_region", merge_conditions(region, filter_conditions(filters)))

    def cells_by_lac_tac(self, lac_tac: int, filters: Optional[FilterParams] = None) -> QueryResult[List[Cell]]:
        if lac_tac <= 0:
            raise ValueError("LAC/TAC must be greater than 0")
        filters = (filters or FilterParams()).validate()
        return self._find(
            "cells_by_lac_tac",
            merge_conditions((["c.lac_tac = %s"], [str(lac_tac)]), filter_conditions(filters)),
        )

    def cells_by_enb_gnb(self, enb_gnb_id: int, filters: Optional[FilterParams] = None) -> QueryResult[List[Cell]]:
        if enb_gnb_id <= 0:
            raise ValueError("eNB/gNB ID must be greater than 0")
        filters = (filters or FilterParams()).validate()
        return self._find(
            "cells_by_enb_gnb",
            merge_conditions((["e.enb_gnb = %s"], [enb_gnb_id]), filter_conditions(filters)),
        )

    def cells_by_band(self, band: str, filters: Optional[FilterParams] = None) -> QueryResult[List[Cell]]:
        if not band or not band.strip():
            raise ValueError("Band cannot be empty")
        filters = (filters or FilterParams()).validate()
        return self._find(
            "cells_by_band",
            merge_conditions((["b.band = %s"], [band.strip()]), filter_conditions(filters)),
        )

    def list_districts(self) -> QueryResult[List[str]]:
        return self._run("list_districts", [], lambda cur: [row["district"] for row in fetch_all(cur, DISTRICTS_SQL)])

    def list_counties(self, district: str) -> QueryResult[List[str]]:
        return self._run(
            "list_counties",
            [],
            lambda cur: [row["county"] for row in fetch_all(cur, COUNTIES_SQL, (district.strip(),))],
        )

    def list_operator_brands(self) -> QueryResult[List[str]]:
        return self._run("list_operator_brands", [], lambda cur: [row["brand"] for row in fetch_all(cur, BRANDS_SQL)])
