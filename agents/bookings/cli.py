"""Command-line interface for trips and bookings."""

import argparse
import json
import sys
from pathlib import Path

import database as db
from agents.timeline import FilterState, build_timeline, filter_timeline, format_timeline, initial_filter_state
from agents.trips import handler

from .models import SourceDocument, Trip
from .parser import BookingParser

SUPPORTED_FORMATS = (".pdf", ".xlsx", ".xls", ".txt", ".eml")


def _load_documents(paths):
    documents = []
    for path in paths:
        input_path = Path(path)
        if not input_path.exists():
            print(f"Error: File not found: {input_path}", file=sys.stderr)
            sys.exit(1)
        if input_path.suffix.lower() not in SUPPORTED_FORMATS:
            print(f"Error: Unsupported file format: {input_path.suffix}", file=sys.stderr)
            print(f"Supported formats: {', '.join(SUPPORTED_FORMATS)}", file=sys.stderr)
            sys.exit(1)
        mime_type = "application/pdf" if input_path.suffix.lower() == ".pdf" else "application/octet-stream"
        documents.append(SourceDocument(input_path.name, input_path.read_bytes(), mime_type))
    return documents


def _print_result(result, status, as_json=False):
    if status != 200:
        print(f"Error ({status}): {result.get('error')}", file=sys.stderr)
        sys.exit(1)
    if as_json:
        print(json.dumps(result, indent=2, default=str))


def main():
    parser = argparse.ArgumentParser(
        description="Build trips from booking documents and show their timeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create a trip from boarding passes and a hotel confirmation
  python -m agents.bookings.cli create pass_mario.pdf pass_anna.pdf hotel.pdf

  # Add more bookings to an existing trip
  python -m agents.bookings.cli add 2026-03-tokyo return_flight.pdf

  # Show the timeline, only restaurants matching "sushi"
  python -m agents.bookings.cli timeline 2026-03-tokyo --category restaurant --search sushi

  # Timeline of a trip stored in a JSON file (no database)
  python -m agents.bookings.cli timeline --trip-file trip.json
        """,
    )
    parser.add_argument(
        "--api-key",
        type=str,
        help="Anthropic API key (or set ANTHROPIC_API_KEY env var)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print raw JSON responses",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create", help="Create a trip from booking documents")
    create.add_argument("files", nargs="+", help="Booking documents (PDF, Excel, text)")

    add = subparsers.add_parser("add", help="Add booking documents to a trip")
    add.add_argument("trip_id")
    add.add_argument("files", nargs="+", help="Booking documents (PDF, Excel, text)")

    timeline = subparsers.add_parser("timeline", help="Show a trip's day-by-day timeline")
    timeline.add_argument("trip_id", nargs="?")
    timeline.add_argument("--trip-file", type=str, help="Read the trip from a JSON file instead")
    timeline.add_argument(
        "--category",
        action="append",
        help="Only show this category (repeatable)",
    )
    timeline.add_argument("--search", type=str, default="", help="Free-text filter")
    timeline.add_argument("--lang", choices=["en", "it"], default="en")

    subparsers.add_parser("list", help="List stored trips")

    rename = subparsers.add_parser("rename", help="Rename a trip")
    rename.add_argument("trip_id")
    rename.add_argument("title")

    delete = subparsers.add_parser("delete", help="Delete a trip and its files")
    delete.add_argument("trip_id")

    args = parser.parse_args()

    try:
        if args.command == "timeline" and args.trip_file:
            _show_timeline(args)
            return

        db.init_db()

        if args.command == "create":
            documents = _load_documents(args.files)
            print(f"Parsing {len(documents)} document(s)...")
            result, status = handler.create_trip_handler(documents, parser=BookingParser(api_key=args.api_key))
            _print_result(result, status, args.json)
            trip = result["tripData"]
            print(f"Created trip {result['tripId']}: {len(trip['flights'])} flights, {len(trip['hotels'])} hotels")

        elif args.command == "add":
            documents = _load_documents(args.files)
            print(f"Parsing {len(documents)} document(s)...")
            result, status = handler.add_booking_handler(
                args.trip_id, documents, parser=BookingParser(api_key=args.api_key)
            )
            _print_result(result, status, args.json)
            print(
                f"Added {result['addedFlights']} flights, {result['addedHotels']} hotels, "
                f"{result['addedPassengers']} passengers "
                f"({result['skippedFlights'] + result['skippedHotels']} duplicates skipped)"
            )

        elif args.command == "timeline":
            if not args.trip_id:
                parser.error("timeline needs a trip id or --trip-file")
            _show_timeline(args)

        elif args.command == "list":
            result, status = handler.list_trips_handler()
            _print_result(result, status, args.json)
            for trip in result["trips"]:
                title = trip["title"].get("en") if isinstance(trip["title"], dict) else trip["title"]
                print(f"{trip['id']:<32} {trip['start_date'] or '':<10}  {title}")

        elif args.command == "rename":
            result, status = handler.rename_trip_handler(args.trip_id, args.title)
            _print_result(result, status, args.json)
            print(f"Renamed {args.trip_id} to: {result['title']['en']}")

        elif args.command == "delete":
            result, status = handler.delete_trip_handler(args.trip_id)
            _print_result(result, status, args.json)
            print(f"Deleted trip {args.trip_id}")

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _show_timeline(args):
    if args.trip_file:
        with open(args.trip_file) as f:
            trip = Trip.from_dict(json.load(f))
    else:
        result, status = handler.get_trip_handler(args.trip_id)
        _print_result(result, status)
        trip = Trip.from_dict(result["tripData"], version=result["version"])

    timeline = build_timeline(trip)
    state = initial_filter_state(timeline)
    if args.category:
        state = FilterState().select_all(args.category)
    state = state.with_query(args.search)
    filtered = filter_timeline(timeline, state)

    if args.json:
        print(json.dumps(filtered.to_dict(), indent=2, default=str))
    else:
        print(format_timeline(filtered, trip, lang=args.lang))


if __name__ == "__main__":
    main()
