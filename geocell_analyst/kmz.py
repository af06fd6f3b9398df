"""
KMZ export for Google Earth.

The document is assembled as a simplekml element tree and serialized once,
so names and descriptions coming from the database or the CSV are escaped
at serialization time. Layout:

    Document
      Folder <date>            (one per day, or a single flat folder)
        Folder Points          rotated tower icons, 50 m relativeToGround
        Folder Polygons        coverage areas, translucent fill, extruded

The KMZ is a zip holding exactly one entry, doc.kml. Icons are referenced
by URL and are not embedded.
"""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import simplekml

from geocell_analyst.colors import color_for_operator, color_for_technology, make_transparent
from geocell_analyst.models import Cell, CellPolygon, CsvData, icon_heading, technology_name

logger = logging.getLogger(__name__)

KML_ENTRY = "doc.kml"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'
ICON_HREF = "http://maps.google.com/mapfiles/kml/pal4/icon57.png"
ICON_SCALE = 1.2
POINT_ALTITUDE_M = 50.0
POLYGON_LINE_WIDTH = 2
UNDATED_FOLDER = "Undated"

# (lookup key, cell, placemark label)
Entry = Tuple[str, Cell, str]


def split_timestamp(timestamp: str) -> Tuple[str, str]:
    """'2025/04/26 00:02:34' -> ('2025/04/26', '00:02:34'), split on the first space."""
    day, _, time_of_day = timestamp.strip().partition(" ")
    return day, time_of_day.strip()


def group_by_date(cells: Mapping[str, Cell], timestamps_by_cgi: Mapping[str, str]) -> List[Tuple[str, List[Entry]]]:
    """
    Group cells into (date, entries) pairs, dates ascending, entries by time.

    The fixed-width zero-padded timestamp format makes plain string sorting
    chronological. Cells without a timestamp end up in a trailing
    "Undated" group labelled by their key.
    """
    dated: Dict[str, List[Tuple[str, Entry]]] = {}
    undated: List[Entry] = []
    for key, cell in cells.items():
        timestamp = (timestamps_by_cgi.get(key) or "").strip()
        if not timestamp:
            undated.append((key, cell, key))
            continue
        day, time_of_day = split_timestamp(timestamp)
        dated.setdefault(day, []).append((time_of_day, (key, cell, time_of_day or key)))

    groups = [
        (day, [entry for _, entry in sorted(items, key=lambda item: item[0])])
        for day, items in sorted(dated.items())
    ]
    if undated:
        logger.warning("%d cell(s) have no timestamp; placing them in the %r folder", len(undated), UNDATED_FOLDER)
        groups.append((UNDATED_FOLDER, undated))
    return groups


def _fmt(value, suffix: str = "") -> str:
    if value is None or value == "":
        return "N/A"
    return f"{value}{suffix}"


def describe_cell(
    cell: Cell,
    *,
    key: Optional[str] = None,
    timestamp: Optional[str] = None,
    csv_data: Optional[CsvData] = None,
) -> str:
    lines: List[str] = []
    target = csv_data.target if csv_data else cell.target
    notes = csv_data.notes if csv_data else cell.notes
    if csv_data is not None or cell.target is not None or cell.notes is not None:
        lines.append(f"Target: {_fmt(target)}")
        lines.append(f"Notes: {_fmt(notes)}")
    if timestamp:
        lines.append(f"Timestamp: {timestamp}")

    lines.append(f"CGI: {_fmt(cell.cgi or key)}")
    lines.append(f"Paragon CGI: {_fmt(cell.paragon_cgi)}")
    lines.append(f"Technology: {technology_name(cell.technology)}")

    if cell.mcc_mnc is not None:
        op = cell.mcc_mnc
        lines.append(f"Operator: {_fmt(op.operator)}")
        lines.append(f"Brand: {_fmt(op.brand)}")
        lines.append(f"MCC-MNC: {_fmt(op.mcc)}-{_fmt(op.mnc)}")

    lines.append(f"Name: {_fmt(cell.name)}")
    lines.append(f"LAC/TAC: {_fmt(cell.lac_tac)}")
    if cell.ci:
        lines.append(f"CI: {cell.ci}")
    lines.append(f"eCI/nCI: {_fmt(cell.eci_nci)}")
    lines.append(f"eNB/gNB ID: {_fmt(cell.enb_gnb if cell.enb_gnb is not None else cell.enb_gnb_id)}")

    if cell.band is not None:
        band = cell.band
        lines.append(f"Band: {_fmt(band.band)}")
        lines.append(f"EARFCN: {_fmt(band.earfcn)}")
        lines.append(f"Bandwidth: {_fmt(band.bandwidth, ' MHz')}")
        lines.append(f"Uplink Freq: {_fmt(band.uplink_freq, ' MHz')}")
        lines.append(f"Downlink Freq: {_fmt(band.downlink_freq, ' MHz')}")
    else:
        lines.append("Band: N/A")

    lines.append(f"Direction: {cell.direction}°")

    location = cell.location
    if location is not None:
        if location.coordinates is not None:
            lines.append(f"Coordinates: {location.latitude}, {location.longitude}")
        if location.address:
            lines.append(f"Address: {location.address}")
        if location.address1:
            lines.append(f"Address 1: {location.address1}")
        if location.postal_designation:
            lines.append(f"Postal: {location.postal_designation}")
        if location.zip4 is not None and location.zip3 is not None:
            lines.append(f"ZIP: {location.zip4:04d}-{location.zip3:03d}")
        if location.county is not None:
            lines.append(f"County: {_fmt(location.county.name)}")
            if location.county.district is not None:
                lines.append(f"District: {_fmt(location.county.district.name)}")

    lines.append(f"Created: {cell.created}")
    lines.append(f"Modified: {cell.modified}")
    if cell.distance_from_reference is not None:
        lines.append(f"Distance: {cell.distance_from_reference:.2f} km")
    return "\n".join(lines)


def _ring_coords(polygon: CellPolygon) -> List[Tuple[float, float, float]]:
    return [(coord[0], coord[1], POINT_ALTITUDE_M) for coord in polygon.polygon.exterior.coords]


def _add_group(
    kml: simplekml.Kml,
    name: str,
    entries: Sequence[Entry],
    cell_polygons: Mapping[int, Sequence[CellPolygon]],
    *,
    timestamps_by_cgi: Mapping[str, str],
    csv_data_by_cgi: Mapping[str, CsvData],
    color_by_technology: bool,
) -> Tuple[int, int]:
    folder = kml.newfolder(name=name, description=f"{name} cells")
    points = folder.newfolder(name="Points", description=f"Cell points of {name}")
    polygons = folder.newfolder(name="Polygons", description=f"Cell polygons of {name}")

    point_count = polygon_count = 0
    for key, cell, label in entries:
        csv_data = csv_data_by_cgi.get(key)
        timestamp = timestamps_by_cgi.get(key)
        csv_color = csv_data.color if csv_data else cell.color
        if csv_color:
            color = csv_color
        elif color_by_technology:
            color = color_for_technology(cell.technology)
        else:
            color = color_for_operator(cell.brand)
        description = describe_cell(cell, key=key, timestamp=timestamp, csv_data=csv_data)

        coordinates = cell.coordinates
        if coordinates is not None:
            pnt = points.newpoint(
                name=label,
                description=description,
                coords=[(coordinates.x, coordinates.y, POINT_ALTITUDE_M)],
            )
            pnt.altitudemode = simplekml.AltitudeMode.relativetoground
            pnt.style.iconstyle.color = color
            pnt.style.iconstyle.scale = ICON_SCALE
            pnt.style.iconstyle.heading = icon_heading(cell.direction)
            pnt.style.iconstyle.icon.href = ICON_HREF
            point_count += 1

        fill = make_transparent(color)
        for cell_polygon in cell_polygons.get(cell.id, ()):
            if cell_polygon.polygon is None:
                continue
            pol = polygons.newpolygon(
                name=f"{label} - Polygon",
                description=description,
                outerboundaryis=_ring_coords(cell_polygon),
            )
            pol.altitudemode = simplekml.AltitudeMode.relativetoground
            pol.extrude = 1
            pol.style.linestyle.color = fill
            pol.style.linestyle.width = POLYGON_LINE_WIDTH
            pol.style.polystyle.color = fill
            pol.style.polystyle.fill = 1
            pol.style.polystyle.outline = 1
            polygon_count += 1
    return point_count, polygon_count


def write_kmz(kml: simplekml.Kml, output_path: Union[str, Path]) -> Path:
    path = Path(output_path)
    document = kml.kml(format=False)
    if not document.startswith("<?xml"):
        document = XML_DECLARATION + document
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as kmz:
        kmz.writestr(KML_ENTRY, document.encode("utf-8"))
    return path


def build_kml(
    cells: Mapping[str, Cell],
    cell_polygons: Mapping[int, Sequence[CellPolygon]],
    *,
    timestamps_by_cgi: Optional[Mapping[str, str]] = None,
    csv_data_by_cgi: Optional[Mapping[str, CsvData]] = None,
    title: str = "Cells Export",
    description: str = "Generated from CSV data",
    flat_folder: str = "Cells",
) -> simplekml.Kml:
    timestamps_by_cgi = timestamps_by_cgi or {}
    csv_data_by_cgi = csv_data_by_cgi or {}
    kml = simplekml.Kml(name=title)
    kml.document.description = description

    grouped = bool(timestamps_by_cgi) and bool(cells)
    if grouped:
        groups = group_by_date(cells, timestamps_by_cgi)
    else:
        groups = [(flat_folder, [(key, cell, key) for key, cell in cells.items()])]

    points = polygons = 0
    for name, entries in groups:
        added = _add_group(
            kml,
            name,
            entries,
            cell_polygons,
            timestamps_by_cgi=timestamps_by_cgi,
            csv_data_by_cgi=csv_data_by_cgi,
            color_by_technology=grouped,
        )
        points += added[0]
        polygons += added[1]
    logger.info("KML document: %d folder(s), %d point(s), %d polygon(s)", len(groups), points, polygons)
    return kml


def generate_kmz(
    cells: Mapping[str, Cell],
    cell_polygons: Mapping[int, Sequence[CellPolygon]],
    timestamps_by_cgi: Mapping[str, str],
    csv_data_by_cgi: Mapping[str, CsvData],
    output_path: Union[str, Path],
) -> Path:
    """Export CSV-joined cells, one folder per day of observation."""
    kml = build_kml(
        cells,
        cell_polygons,
        timestamps_by_cgi=timestamps_by_cgi,
        csv_data_by_cgi=csv_data_by_cgi,
    )
    return write_kmz(kml, output_path)


def cells_by_key(cells: Iterable[Cell]) -> Dict[str, Cell]:
    keyed: Dict[str, Cell] = {}
    for cell in cells:
        key = cell.lookup_key or f"unknown-{cell.id}"
        if key in keyed:
            key = f"{key}#{cell.id}"
        keyed[key] = cell
    return keyed


def generate_query_result_kmz(
    cells: Iterable[Cell],
    cell_polygons: Mapping[int, Sequence[CellPolygon]],
    output_path: Union[str, Path],
) -> Path:
    """Export query results: one flat folder, placemarks named by CGI, colored by operator."""
    kml = build_kml(
        cells_by_key(cells),
        cell_polygons,
        title="Query Results Export",
        description="Generated from database query",
        flat_folder="Query Results",
    )
    return write_kmz(kml, output_path)
