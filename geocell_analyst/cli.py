#!/usr/bin/env python3
"""
GeoCell Analyst command line:
- Looks up cell towers in the PostGIS database (CGI list, neighbors, circle,
  rectangle, administrative region, LAC/TAC, eNB/gNB, band)
- Prints the results as text
- Exports CSV observations or query results to KMZ for Google Earth

Usage:
  geocell-analyst csv-to-kmz observations.csv --output cells.kmz
  geocell-analyst neighbors 268-06-8840-8453 --radius 2 --tech 4G,5G --kmz near.kmz
  geocell-analyst circle 38.7 -9.1 --radius 1.5 --operator MEO
  geocell-analyst rectangle 38.70 -9.20 38.80 -9.10 --from 2024-01-01
  geocell-analyst region --district Lisboa --county Sintra

Database settings come from DB_HOST, DB_PORT, DB_NAME, DB_USER and
DB_PASSWORD (environment or .env).
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import psycopg2

from geocell_analyst.config import ConfigError, DbConfig
from geocell_analyst.controller import AppController, JobRunner, SearchOutcome, parse_operators, parse_technologies
from geocell_analyst.db import Database
from geocell_analyst.models import FilterParams
from geocell_analyst.queries import CellRepository
from geocell_analyst.report import format_names


def warn(message: str) -> None:
    print(f"WARNING: {message}", file=sys.stderr, flush=True)


def _add_filter_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--tech", default="", help="Comma-separated technologies, e.g. 4G,5G or 4,5.")
    p.add_argument("--operator", default="", help="Comma-separated operator brands, e.g. MEO,NOS.")
    p.add_argument("--from", dest="start_date", default=None, help="Created on or after YYYY-MM-DD.")
    p.add_argument("--to", dest="end_date", default=None, help="Created on or before YYYY-MM-DD.")
    p.add_argument("--kmz", default=None, help="Also export the results to this KMZ file.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="geocell-analyst", description="Cell tower lookups and KMZ export.")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    sub = p.add_subparsers(dest="command", required=True)

    csv_p = sub.add_parser("csv-to-kmz", help="Export the cells named in a CSV to KMZ, grouped by day.")
    csv_p.add_argument("csv", help="CSV with columns timestamp,cgi,color,target,notes.")
    csv_p.add_argument("--output", required=True, help="KMZ file to write.")

    nb = sub.add_parser("neighbors", help="Cells within a radius of a reference cell.")
    nb.add_argument("cgi")
    nb.add_argument("--radius", required=True, help="Radius in km.")
    nb.add_argument("--same-network", action="store_true", help="Only cells of the reference cell's operator.")
    _add_filter_args(nb)

    circle = sub.add_parser("circle", help="Cells within a radius of a point.")
    circle.add_argument("lat")
    circle.add_argument("lon")
    circle.add_argument("--radius", required=True, help="Radius in km.")
    _add_filter_args(circle)

    rect = sub.add_parser("rectangle", help="Cells inside a lat/lon rectangle (any two opposite corners).")
    rect.add_argument("lat1")
    rect.add_argument("lon1")
    rect.add_argument("lat2")
    rect.add_argument("lon2")
    _add_filter_args(rect)

    region = sub.add_parser("region", help="Cells in a county, optionally restricted to a district.")
    region.add_argument("--district", default=None)
    region.add_argument("--county", required=True)
    _add_filter_args(region)

    lac = sub.add_parser("lac-tac", help="Cells with a LAC/TAC.")
    lac.add_argument("lac_tac")
    _add_filter_args(lac)

    enb = sub.add_parser("enb-gnb", help="Cells of an eNB/gNB.")
    enb.add_argument("enb_gnb")
    _add_filter_args(enb)

    band = sub.add_parser("band", help="Cells on a frequency band.")
    band.add_argument("band")
    _add_filter_args(band)

    sub.add_parser("districts", help="List districts.")
    counties = sub.add_parser("counties", help="List the counties of a district.")
    counties.add_argument("district")
    sub.add_parser("operators", help="List operator brands.")
    return p


def filters_from_args(args: argparse.Namespace) -> FilterParams:
    return FilterParams(
        technologies=parse_technologies(args.tech),
        operators=parse_operators(args.operator),
        same_network=getattr(args, "same_network", False),
        start_date=args.start_date,
        end_date=args.end_date,
    )


def run_query(controller: AppController, args: argparse.Namespace, filters: FilterParams) -> SearchOutcome:
    if args.command == "neighbors":
        return controller.search_neighbors(args.cgi, args.radius, filters)
    if args.command == "circle":
        return controller.search_circle(args.lat, args.lon, args.radius, filters)
    if args.command == "rectangle":
        return controller.search_rectangle(args.lat1, args.lon1, args.lat2, args.lon2, filters)
    if args.command == "region":
        return controller.search_region(args.district, args.county, filters)
    if args.command == "lac-tac":
        return controller.search_lac_tac(args.lac_tac, filters)
    if args.command == "enb-gnb":
        return controller.search_enb_gnb(args.enb_gnb, filters)
    if args.command == "band":
        return controller.search_band(args.band, filters)
    raise ValueError(f"unknown query command {args.command!r}")


def dispatch(controller: AppController, jobs: JobRunner, args: argparse.Namespace) -> int:
    if args.command == "csv-to-kmz":
        print(f"Exporting {args.csv} -> {args.output}...", flush=True)
        job = jobs.wait(jobs.submit("csv-to-kmz", controller.process_csv_to_kmz, args.csv, args.output))
        if job.get("status") != "completed":
            print(f"ERROR: {job.get('message', 'export did not finish')}", file=sys.stderr, flush=True)
            return 1
        outcome = job["result"]
        if not outcome.ok:
            print(outcome.message, file=sys.stderr, flush=True)
            return 1
        print(outcome.message, flush=True)
        return 0

    listings = {
        "districts": lambda: ("Districts", controller.repository.list_districts()),
        "counties": lambda: (f"Counties of {args.district}", controller.repository.list_counties(args.district)),
        "operators": lambda: ("Operators", controller.repository.list_operator_brands()),
    }
    if args.command in listings:
        title, result = listings[args.command]()
        print(format_names(title, result), flush=True)
        return 0 if result.ok else 1

    try:
        filters = filters_from_args(args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr, flush=True)
        return 2

    outcome = run_query(controller, args, filters)
    print(outcome.text, flush=True)
    if outcome.failed:
        return 1

    if args.kmz:
        if not outcome.cells:
            warn("No cells to export; writing an empty KMZ.")
        export = controller.export_query_results_to_kmz(outcome.cells, args.kmz)
        if not export.ok:
            print(export.message, file=sys.stderr, flush=True)
            return 1
        print(export.message, flush=True)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = DbConfig.from_env()
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr, flush=True)
        return 2

    print(f"Connecting to Postgres: {config.describe()}", flush=True)
    try:
        db = Database.connect(config)
    except psycopg2.Error as exc:
        print(f"ERROR: cannot connect: {exc}", file=sys.stderr, flush=True)
        return 1
    try:
        db.ensure_postgis()
    except psycopg2.Error as exc:
        print(f"ERROR: cannot connect: {exc}", file=sys.stderr, flush=True)
        db.close()
        return 1

    try:
        controller = AppController(CellRepository(db))
        return dispatch(controller, JobRunner(), args)
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
