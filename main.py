"""
ReviewSync - Google Maps review synchronization

CLI entry point: syncs the reviews of one known place into the review
store and prints the {status_code, message, data} response as JSON.
"""

import argparse
import json
import logging
import sys
from typing import Optional

from reviewsync.errors import StoreUnavailable, UnknownContext
from reviewsync.orchestrator import SyncOrchestrator
from reviewsync.registry.place_registry import PlaceRegistry
from reviewsync.utils.export import export_reviews_csv
import reviewsync.config.settings as settings

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Configure logging for the entire application."""
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=settings.LOG_FORMAT,
        handlers=handlers
    )
    # httpx logs request URLs at INFO, and those carry the api_key
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_registry() -> PlaceRegistry:
    """Place table from PLACES_FILE when set, else the built-in table."""
    if settings.PLACES_FILE:
        return PlaceRegistry.from_json(settings.PLACES_FILE)
    return PlaceRegistry(settings.PLACES)


def handle(
    context: Optional[str],
    orchestrator: SyncOrchestrator,
    registry: PlaceRegistry,
    export_path: Optional[str] = None
) -> dict:
    """
    Sync the place named by context and build the response.

    Returns:
        {"status_code": 200|206|400|500, "message": str, "data": ...}
    """
    if not context:
        return {"status_code": 400, "message": "context is required", "data": None}

    try:
        registry.resolve(context)
    except UnknownContext:
        logger.warning(f"Rejected unknown context: {context!r}")
        return {"status_code": 400, "message": f"invalid context: {context}", "data": None}

    try:
        outcome = orchestrator.sync_context(context, registry)
    except StoreUnavailable as e:
        logger.error(f"Review store unavailable while syncing '{context}': {e}", exc_info=True)
        return {"status_code": 500, "message": "Error syncing reviews: review store unavailable", "data": None}
    except Exception as e:
        logger.error(f"Sync of '{context}' failed: {e}", exc_info=True)
        return {"status_code": 500, "message": "Error syncing reviews", "data": None}

    response = outcome.to_response()

    if export_path:
        try:
            export_reviews_csv(outcome.reviews, export_path)
        except OSError as e:
            logger.error(f"Could not export reviews to {export_path}: {e}", exc_info=True)
            response["message"] += f" (export to {export_path} failed)"

    return response


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="ReviewSync - incremental Google Maps review sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync one place
  python main.py --context nema_leblon

  # Sync and export the reported reviews
  python main.py --context nema_humaita --export output/humaita.csv

  # Show known places and how many reviews are stored for each
  python main.py --list-contexts

Note: Set SERPAPI_API_KEY environment variable before running.
        """
    )

    parser.add_argument(
        "--context",
        help=f"Place context ({', '.join(sorted(settings.PLACES))}, or one from PLACES_FILE)"
    )

    parser.add_argument(
        "--list-contexts",
        action="store_true",
        help="List known contexts with their stored review counts and exit"
    )

    parser.add_argument(
        "--database-url",
        default=settings.DATABASE_URL,
        help="SQLAlchemy database URL (default: DATABASE_URL or local SQLite file)"
    )

    parser.add_argument(
        "--export",
        help="Write the reviews of the response to this CSV file"
    )

    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {settings.LOG_LEVEL})"
    )

    args = parser.parse_args()

    if not args.context and not args.list_contexts:
        parser.error("--context is required unless --list-contexts is given")

    setup_logging(args.log_level, settings.LOG_FILE)

    if not settings.SERPAPI_API_KEY:
        logger.warning(
            "SERPAPI_API_KEY environment variable not set. "
            "Syncs will return stored reviews only."
        )

    settings.DATABASE_URL = args.database_url

    try:
        registry = build_registry()
        orchestrator = SyncOrchestrator.from_settings()
    except Exception as e:
        logger.error(f"Initialization failed: {e}", exc_info=True)
        print(json.dumps({"status_code": 500, "message": "Initialization failed", "data": None}))
        sys.exit(1)

    try:
        if args.list_contexts:
            for context in registry.contexts():
                place = registry.get(context)
                count = orchestrator.store.count_reviews(place.place_id)
                print(f"{context}\t{place.place_id}\t{count}")
            sys.exit(0)

        response = handle(args.context, orchestrator, registry, export_path=args.export)
        print(json.dumps(response, indent=2, ensure_ascii=False))
        sys.exit(0 if response["status_code"] in (200, 206) else 1)

    except KeyboardInterrupt:
        logger.warning("Sync interrupted by user")
        sys.exit(1)

    except StoreUnavailable as e:
        logger.error(f"Review store unavailable: {e}")
        sys.exit(1)

    finally:
        orchestrator.close()


if __name__ == "__main__":
    main()
