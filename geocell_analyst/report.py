"""Plain-text rendering of query results for the terminal."""

from __future__ import annotations

from typing import Iterable, List, Optional

from geocell_analyst.models import Cell, FilterParams, technology_name
from geocell_analyst.queries import QueryResult

NO_RESULTS = "No cells found within the specified area and filters."


def format_cell(index: int, cell: Cell) -> List[str]:
    lines = [f"{index}. CGI: {cell.cgi or cell.paragon_cgi or 'N/A'}"]
    lines.append(f"   Technology: {technology_name(cell.technology)}")
    if cell.mcc_mnc is not None:
        lines.append(f"   Operator: {cell.mcc_mnc.brand or cell.mcc_mnc.operator or 'N/A'}")
    lines.append(f"   Name: {cell.name or 'N/A'}")
    lines.append(f"   LAC/TAC: {cell.lac_tac}")
    lines.append(f"   eCI/nCI: {cell.eci_nci or 'N/A'}")
    if cell.band is not None:
        lines.append(f"   Band: {cell.band.band}")
    if cell.coordinates is not None:
        lines.append(f"   Location: {cell.coordinates.y:.6f}, {cell.coordinates.x:.6f}")
    if cell.distance_from_reference is not None:
        lines.append(f"   Distance: {cell.distance_from_reference:.2f} km")
    return lines


def format_results(
    title: str,
    result: QueryResult,
    filters: Optional[FilterParams] = None,
    criteria: Iterable[str] = (),
) -> str:
    """
    Render a query result as the text block shown to the analyst.

    A failed query is reported as such, never as an empty result.
    """
    lines = [title, "=" * len(title)]
    lines.extend(criteria)
    if filters is not None:
        lines.extend(filters.describe())
    lines.append("")

    if result.error is not None:
        lines.append(f"Query failed ({result.error.operation}): {result.error.message}")
        return "\n".join(lines)

    cells: List[Cell] = list(result.value)
    if not cells:
        lines.append(NO_RESULTS)
        return "\n".join(lines)

    lines.append(f"Found {len(cells)} cell(s):")
    lines.append("")
    for index, cell in enumerate(cells, start=1):
        lines.extend(format_cell(index, cell))
        lines.append("")
    return "\n".join(lines).rstrip("\n")


def format_names(title: str, result: QueryResult) -> str:
    if result.error is not None:
        return f"{title}\nQuery failed ({result.error.operation}): {result.error.message}"
    names = list(result.value)
    if not names:
        return f"{title}\n(none)"
    return "\n".join([title, *(f"  {name}" for name in names)])
