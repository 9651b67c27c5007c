#!/usr/bin/env python3
"""
CLI for the Service Finder.

Usage:
    python run_engine.py search --zip 10001
    python run_engine.py search --state NY --type "Food Bank"
    python run_engine.py nearby --lat 40.75 --lon -73.99 --radius 10
    python run_engine.py nearby --zip 10001 --radius 25 --json
    python run_engine.py nearby --here --radius 10
    python run_engine.py facets --csv data/orgs.csv --zip-coords data/zip_coordinates.json
"""

import argparse
import asyncio
import json
import logging
import sys
import time

from service_finder.config import Config
from service_finder.engine import FinderEngine
from service_finder.errors import FinderError, LoadFailure
from service_finder.models import SearchResponse
from service_finder.query import result_count_label


def setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def format_result(result) -> str:
    """Plain-text result card."""
    rec = result.record
    lines = [rec.name]
    if result.distance is not None:
        lines.append(f"  Distance:     {result.distance} miles away")
    lines.append(f"  Service Type: {rec.service_type}")
    lines.append(f"  Location:     {rec.city}, {rec.state} {rec.zip}".rstrip())
    if rec.address:
        lines.append(f"  Address:      {rec.address}")
    if rec.phone:
        lines.append(f"  Phone:        {rec.phone}")
    if rec.email:
        lines.append(f"  Email:        {rec.email}")
    return "\n".join(lines)


def print_response(response: SearchResponse, as_json: bool = False):
    if as_json:
        print(json.dumps(response.to_dict(), indent=2))
        return
    if not response.results:
        print(response.message)
        return
    print(result_count_label(response.count))
    print()
    for result in response.results:
        print(format_result(result))
        print()


def build_config(args) -> Config:
    overrides = {}
    if args.csv:
        overrides["csv_source"] = args.csv
    if args.zip_coords:
        overrides["zip_coordinates_source"] = args.zip_coords
    if args.city_coords:
        overrides["city_coordinates_source"] = args.city_coords
    if args.require_zip:
        overrides["require_zip"] = True
    if args.geocode:
        overrides["coordinate_source"] = "geocoding"
    if args.no_cache:
        overrides["cache_geocoding"] = False
    return Config.from_env(**overrides)


def run_command(engine: FinderEngine, args) -> SearchResponse:
    if args.command == "search":
        return engine.search(zip_code=args.zip or "", state=args.state or "", service_type=args.type or "")
    if args.lat is not None and args.lon is not None:
        return engine.search_nearby(args.lat, args.lon, args.radius, service_type=args.type or "")
    if args.zip:
        return engine.search_near_zip(args.zip, args.radius, service_type=args.type or "")
    return asyncio.run(engine.search_near_me(args.radius, service_type=args.type or ""))


def main():
    parser = argparse.ArgumentParser(description="Service Finder")
    parser.add_argument("--csv", help="Organization CSV (URL or path)")
    parser.add_argument("--zip-coords", help="Zip coordinate JSON (URL or path)")
    parser.add_argument("--city-coords", help="City coordinate JSON (URL or path)")
    parser.add_argument("--require-zip", action="store_true", help="Drop CSV rows without a zip code")
    parser.add_argument("--geocode", action="store_true", help="Geocode zips via the postal-code API instead of the zip table")
    parser.add_argument("--no-cache", action="store_true", help="Disable the geocode cache")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_search = sub.add_parser("search", help="Exact-match search by zip, state, and/or service type")
    p_search.add_argument("--zip", help="Zip code (12345 or 12345-6789)")
    p_search.add_argument("--state", help="2-letter state code")
    p_search.add_argument("--type", help="Service type")
    p_search.add_argument("--json", action="store_true", help="JSON output")

    p_near = sub.add_parser("nearby", help="Proximity search")
    p_near.add_argument("--lat", type=float, help="Center latitude")
    p_near.add_argument("--lon", type=float, help="Center longitude")
    p_near.add_argument("--zip", help="Center zip code")
    p_near.add_argument("--here", action="store_true", help="Use the current (IP-based) location")
    p_near.add_argument("--radius", type=float, default=10, help="Search radius in miles")
    p_near.add_argument("--type", help="Service type")
    p_near.add_argument("--expand", action="store_true", help="Double the radius (max 50) when nothing is found")
    p_near.add_argument("--json", action="store_true", help="JSON output")

    sub.add_parser("facets", help="List states and service types in the data")

    args = parser.parse_args()
    setup_logging(args.verbose)

    if args.command == "nearby" and not (args.here or args.zip or (args.lat is not None and args.lon is not None)):
        parser.error("nearby needs --lat/--lon, --zip, or --here")

    engine = FinderEngine(build_config(args))
    t0 = time.time()
    try:
        try:
            engine.load()
        except LoadFailure as e:
            print(f"Data unavailable: {e}", file=sys.stderr)
            sys.exit(2)
        logging.getLogger("run_engine").debug(f"Engine ready in {time.time() - t0:.1f}s")

        if args.command == "facets":
            print(json.dumps(engine.facets(), indent=2))
            return
        response = run_command(engine, args)
        if args.command == "nearby" and args.expand and not response.results:
            args.radius = engine.expand_radius(args.radius)
            print(f"No results; expanding search to {args.radius:g} miles", file=sys.stderr)
            response = run_command(engine, args)
        print_response(response, as_json=args.json)
    except FinderError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)
    finally:
        engine.close()


if __name__ == "__main__":
    main()
