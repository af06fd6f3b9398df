"""
Orchestration between the front end, the cell repository and the KMZ writers.

Front-end input arrives as raw text. It is validated here, before any query
is issued, and every outcome (success, invalid input, failed query, failed
export) comes back as a value the caller can render. Long-running actions
can be pushed onto a JobRunner so the caller stays responsive.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from geocell_analyst.csv_ingest import csv_data_by_cgi, parse_csv, timestamps_by_cgi
from geocell_analyst.kmz import generate_kmz, generate_query_result_kmz
from geocell_analyst.models import TECHNOLOGY_CODES, Cell, FilterParams
from geocell_analyst.queries import CellRepository, QueryResult
from geocell_analyst.report import format_results

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# ---------------------------------------------------------------- validation


def parse_float(text: Union[str, float], label: str) -> float:
    try:
        return float(str(text).strip())
    except ValueError:
        raise ValueError(f"{label} must be a number, got {text!r}") from None


def parse_int(text: Union[str, int], label: str) -> int:
    try:
        return int(str(text).strip())
    except ValueError:
        raise ValueError(f"{label} must be a whole number, got {text!r}") from None


def parse_latitude(text: Union[str, float], label: str = "Latitude") -> float:
    value = parse_float(text, label)
    if not -90.0 <= value <= 90.0:
        raise ValueError(f"{label} must be between -90 and 90")
    return value


def parse_longitude(text: Union[str, float], label: str = "Longitude") -> float:
    value = parse_float(text, label)
    if not -180.0 <= value <= 180.0:
        raise ValueError(f"{label} must be between -180 and 180")
    return value


def parse_radius(text: Union[str, float]) -> float:
    value = parse_float(text, "Radius")
    if value <= 0:
        raise ValueError("Radius must be greater than 0")
    return value


def parse_technologies(text: Optional[str]) -> List[int]:
    """'4G, 5' -> [4, 5]. Accepts generation names or raw technology codes."""
    codes: List[int] = []
    for token in (text or "").split(","):
        token = token.strip().upper()
        if not token:
            continue
        if token in TECHNOLOGY_CODES:
            codes.append(TECHNOLOGY_CODES[token])
        elif token.isdigit():
            codes.append(int(token))
        else:
            raise ValueError(f"Unknown technology {token!r} (use 2G, 3G, 4G, 5G, NR-IoT or a numeric code)")
    return codes


def parse_operators(text: Optional[str]) -> List[str]:
    return [op.strip() for op in (text or "").split(",") if op.strip()]


# ---------------------------------------------------------------- outcomes


@dataclass
class ExportOutcome:
    ok: bool
    message: str
    output_path: Optional[Path] = None
    exported: int = 0
    missing: List[str] = field(default_factory=list)


@dataclass
class SearchOutcome:
    text: str
    cells: List[Cell] = field(default_factory=list)
    failed: bool = False


def _remove_partial(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Could not remove partial export %s", path, exc_info=True)


# ---------------------------------------------------------------- jobs


class JobRunner:
    """One thread per job; job state lives in a lock-protected table."""

    def __init__(self):
        self._jobs: Dict[str, Dict[str, Any]] = {}
        self._threads: Dict[str, threading.Thread] = {}
        self._lock = threading.Lock()

    def _set(self, job_id: str, **fields) -> Dict[str, Any]:
        with self._lock:
            job = self._jobs.get(job_id, {})
            job.update(fields)
            self._jobs[job_id] = job
            return dict(job)

    def get(self, job_id: str) -> Dict[str, Any]:
        with self._lock:
            return dict(self._jobs.get(job_id, {}))

    def submit(self, name: str, func: Callable[..., Any], *args, **kwargs) -> str:
        job_id = uuid.uuid4().hex
        self._set(job_id, name=name, status="queued", submitted_at=datetime.now(timezone.utc).isoformat())
        thread = threading.Thread(target=self._run, args=(job_id, name, func, args, kwargs), daemon=True)
        with self._lock:
            self._threads[job_id] = thread
        thread.start()
        return job_id

    def _run(self, job_id: str, name: str, func: Callable[..., Any], args, kwargs) -> None:
        self._set(job_id, status="processing", started_at=datetime.now(timezone.utc).isoformat())
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            logger.exception("Job %s (%s) failed", job_id, name)
            self._set(
                job_id,
                status="failed",
                message=f"{name} failed: {exc}",
                finished_at=datetime.now(timezone.utc).isoformat(),
            )
            return
        self._set(job_id, status="completed", result=result, finished_at=datetime.now(timezone.utc).isoformat())

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        with self._lock:
            thread = self._threads.get(job_id)
        if thread is not None:
            thread.join(timeout)
            if not thread.is_alive():
                with self._lock:
                    self._threads.pop(job_id, None)
        return self.get(job_id)


# ---------------------------------------------------------------- controller


class AppController:
    def __init__(
        self,
        repository: CellRepository,
        kmz_writer: Callable[..., Path] = generate_kmz,
        query_kmz_writer: Callable[..., Path] = generate_query_result_kmz,
    ):
        self.repository = repository
        self._kmz_writer = kmz_writer
        self._query_kmz_writer = query_kmz_writer

    # -- exports

    def process_csv_to_kmz(self, csv_path: PathLike, output_path: PathLike) -> ExportOutcome:
        """
        CSV of observations -> KMZ grouped by day.

        CGIs from the CSV that are not in the database are dropped from the
        export and listed in the outcome.
        """
        output = Path(output_path)
        try:
            records = parse_csv(csv_path)
        except (OSError, ValueError) as exc:
            logger.warning("Cannot read CSV %s: %s", csv_path, exc)
            return ExportOutcome(False, f"Error: cannot read CSV: {exc}")

        csv_data = csv_data_by_cgi(records)
        timestamps = timestamps_by_cgi(records)
        if not csv_data:
            return ExportOutcome(False, "Error: no CGIs found in the CSV file")

        lookup = self.repository.cells_by_cgi_list(csv_data.keys())
        if not lookup.ok:
            return ExportOutcome(False, f"Error: cell lookup failed: {lookup.error.message}")
        cells = lookup.value
        missing = [cgi for cgi in csv_data if cgi not in cells]
        if missing:
            logger.warning("%d CGI(s) from the CSV were not found in the database", len(missing))

        polygons = self.repository.cell_polygons(cell.id for cell in cells.values())
        if not polygons.ok:
            return ExportOutcome(False, f"Error: polygon lookup failed: {polygons.error.message}", missing=missing)

        try:
            self._kmz_writer(
                cells,
                polygons.value,
                {cgi: timestamps[cgi] for cgi in cells if cgi in timestamps},
                {cgi: csv_data[cgi] for cgi in cells},
                output,
            )
        except Exception as exc:
            logger.exception("KMZ export to %s failed", output)
            _remove_partial(output)
            return ExportOutcome(False, f"Error: KMZ export failed: {exc}", missing=missing)

        message = f"Exported {len(cells)} cell(s) to {output}"
        if missing:
            message += f" ({len(missing)} CGI(s) not found: {', '.join(missing)})"
        logger.info("%s", message)
        return ExportOutcome(True, message, output_path=output, exported=len(cells), missing=missing)

    def export_query_results_to_kmz(self, cells: Iterable[Cell], output_path: PathLike) -> ExportOutcome:
        output = Path(output_path)
        cells = list(cells)
        polygons = self.repository.cell_polygons(cell.id for cell in cells)
        if not polygons.ok:
            return ExportOutcome(False, f"Error: polygon lookup failed: {polygons.error.message}")
        try:
            self._query_kmz_writer(cells, polygons.value, output)
        except Exception as exc:
            logger.exception("KMZ export to %s failed", output)
            _remove_partial(output)
            return ExportOutcome(False, f"Error: KMZ export failed: {exc}")
        message = f"Exported {len(cells)} cell(s) to {output}"
        logger.info("%s", message)
        return ExportOutcome(True, message, output_path=output, exported=len(cells))

    # -- searches

    def _search(
        self,
        title: str,
        criteria: List[str],
        filters: Optional[FilterParams],
        query: Callable[[], QueryResult],
    ) -> SearchOutcome:
        try:
            result = query()
        except ValueError as exc:
            return SearchOutcome(f"Error: {exc}", failed=True)
        text = format_results(title, result, filters, criteria)
        return SearchOutcome(text, list(result.value), failed=not result.ok)

    def search_neighbors(self, cgi: str, radius_text: str, filters: FilterParams) -> SearchOutcome:
        try:
            radius = parse_radius(radius_text)
        except ValueError as exc:
            return SearchOutcome(f"Error: {exc}", failed=True)
        return self._search(
            f"Neighbors of {cgi.strip()}",
            [f"Radius: {radius} km"],
            filters,
            lambda: self.repository.neighbor_cells(
                cgi,
                radius,
                technologies=filters.technologies,
                operators=filters.operators,
                same_network=filters.same_network,
                start_date=filters.start_date,
                end_date=filters.end_date,
            ),
        )

    def search_circle(self, lat_text: str, lon_text: str, radius_text: str, filters: FilterParams) -> SearchOutcome:
        try:
            lat = parse_latitude(lat_text)
            lon = parse_longitude(lon_text)
            radius = parse_radius(radius_text)
        except ValueError as exc:
            return SearchOutcome(f"Error: {exc}", failed=True)
        return self._search(
            "Cells in circle",
            [f"Center: {lat}, {lon}", f"Radius: {radius} km"],
            filters,
            lambda: self.repository.cells_in_circle(lat, lon, radius, filters),
        )

    def search_rectangle(
        self, lat1_text: str, lon1_text: str, lat2_text: str, lon2_text: str, filters: FilterParams
    ) -> SearchOutcome:
        try:
            lat1 = parse_latitude(lat1_text, "Latitude 1")
            lon1 = parse_longitude(lon1_text, "Longitude 1")
            lat2 = parse_latitude(lat2_text, "Latitude 2")
            lon2 = parse_longitude(lon2_text, "Longitude 2")
        except ValueError as exc:
            return SearchOutcome(f"Error: {exc}", failed=True)
        return self._search(
            "Cells in rectangle",
            [f"Corner 1: {lat1}, {lon1}", f"Corner 2: {lat2}, {lon2}"],
            filters,
            lambda: self.repository.cells_in_rectangle(lat1, lon1, lat2, lon2, filters),
        )

    def search_region(self, district: Optional[str], county: str, filters: FilterParams) -> SearchOutcome:
        criteria = [f"County: {county}"]
        if district:
            criteria.insert(0, f"District: {district}")
        return self._search(
            "Cells in administrative region",
            criteria,
            filters,
            lambda: self.repository.cells_in_administrative_region(district, county, filters),
        )

    def search_lac_tac(self, lac_tac_text: str, filters: FilterParams) -> SearchOutcome:
        try:
            lac_tac = parse_int(lac_tac_text, "LAC/TAC")
        except ValueError as exc:
            return SearchOutcome(f"Error: {exc}", failed=True)
        return self._search(
            f"Cells with LAC/TAC {lac_tac}",
            [],
            filters,
            lambda: self.repository.cells_by_lac_tac(lac_tac, filters),
        )

    def search_enb_gnb(self, enb_gnb_text: str, filters: FilterParams) -> SearchOutcome:
        try:
            enb_gnb = parse_int(enb_gnb_text, "eNB/gNB ID")
        except ValueError as exc:
            return SearchOutcome(f"Error: {exc}", failed=True)
        return self._search(
            f"Cells of eNB/gNB {enb_gnb}",
            [],
            filters,
            lambda: self.repository.cells_by_enb_gnb(enb_gnb, filters),
        )

    def search_band(self, band: str, filters: FilterParams) -> SearchOutcome:
        return self._search(
            f"Cells on band {band.strip()}",
            [],
            filters,
            lambda: self.repository.cells_by_band(band, filters),
        )
