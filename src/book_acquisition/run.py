"""
CLI runner for book-acquisition.

Usage:
    python -m book_acquisition.run [OPTIONS]

    # Load the combined bestseller/new-arrivals feed into discovery
    python -m book_acquisition.run --source combined

    # Search recent titles by author
    python -m book_acquisition.run --search "한강" --search-target Author

    # Move a book through the workflow, then show the budget
    python -m book_acquisition.run --shortlist 12345
    python -m book_acquisition.run --confirm 12345
    python -m book_acquisition.run --budget
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .config import AcquisitionConfig
from .errors import AcquisitionError
from .models import FetchSource, SearchTarget
from .service import AcquisitionService
from .storage import SqliteStateStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("book-acquisition")


def _print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


async def load_discovery(
    service: AcquisitionService,
    store: SqliteStateStore,
    source: FetchSource,
    page: int,
) -> int:
    """Fetch a discovery page, store it, and print it."""
    state = store.load_workflow()
    books = await service.fetch_books(source, page=page, exclude_ids=state.triaged_ids())
    state = state.with_discovery(books)
    store.save_workflow(state)
    _print_json([b.to_dict() for b in state.discovery])
    logger.info(f"{len(state.discovery)} books in discovery")
    return 0


async def run_search(
    service: AcquisitionService,
    store: SqliteStateStore,
    query: str,
    target: SearchTarget,
    page: int,
) -> int:
    """Search the catalog and store results as the discovery feed."""
    state = store.load_workflow()
    books = await service.search_books(
        query, target=target, page=page, exclude_ids=state.triaged_ids()
    )
    if not books:
        logger.info("No search results")
    state = state.with_discovery(books)
    store.save_workflow(state)
    _print_json([b.to_dict() for b in state.discovery])
    return 0


def move_book(store: SqliteStateStore, action: str, book_id: str) -> int:
    """Apply one workflow transition and persist it."""
    state = store.load_workflow()
    transitions = {
        "shortlist": state.shortlist,
        "confirm": state.confirm,
        "return": state.return_to_review,
        "remove": state.remove,
    }
    state = transitions[action](book_id)
    store.save_workflow(state)
    stage = state.stage_of(book_id)
    logger.info(f"{action}: {book_id} (now {stage.value if stage else 'dropped'})")
    return 0


def show_budget(service: AcquisitionService, store: SqliteStateStore) -> int:
    """Print budget status for the confirmed books."""
    settings = store.load_settings()
    state = store.load_workflow()
    status = service.budget_status(state.confirmed, settings)
    _print_json(status.to_dict())
    if settings.allocation_total() != 100:
        logger.warning(f"Allocations sum to {settings.allocation_total()}%, not 100%")
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="book-acquisition: catalog ingestion and budget tracking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Load bestsellers and new arrivals
    python -m book_acquisition.run --source combined

    # Librarian recommendations, page 2
    python -m book_acquisition.run --source recommendation --page 2

    # Check API keys
    python -m book_acquisition.run --validate-keys

    # Use a specific config file
    python -m book_acquisition.run --config acquisition.yaml --budget
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=Path("acquisition.yaml"),
        help="Path to config file (default: acquisition.yaml)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        help="Override state database path from config",
    )
    parser.add_argument(
        "--source",
        choices=[s.value for s in FetchSource],
        help="Load a discovery feed",
    )
    parser.add_argument(
        "--search",
        type=str,
        help="Search the catalog for recent titles",
    )
    parser.add_argument(
        "--search-target",
        choices=[t.value for t in SearchTarget],
        default=SearchTarget.KEYWORD.value,
        help="Field to search (default: Keyword)",
    )
    parser.add_argument(
        "--page",
        type=int,
        default=1,
        help="1-based page number (default: 1)",
    )
    for action, help_text in (
        ("shortlist", "Move a book from discovery to review"),
        ("confirm", "Move a book from review to confirmed"),
        ("return", "Move a book from confirmed back to review"),
        ("remove", "Drop a book from review"),
    ):
        parser.add_argument(f"--{action}", metavar="BOOK_ID", help=help_text)
    parser.add_argument(
        "--budget",
        action="store_true",
        help="Show budget status for confirmed books",
    )
    parser.add_argument(
        "--validate-keys",
        action="store_true",
        help="Check catalog and recommendation API keys",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = AcquisitionConfig.from_yaml(args.config)
    if args.db:
        config.db_path = args.db

    logger.info(f"Config loaded from {args.config}")
    logger.debug(f"Relays: {config.fetch.relays}")

    service = AcquisitionService(config)
    store = SqliteStateStore(config.db_path)

    try:
        if args.validate_keys:
            _print_json(asyncio.run(service.validate_keys()))
            return 0

        if args.search:
            target = SearchTarget(args.search_target)
            return asyncio.run(run_search(service, store, args.search, target, args.page))

        if args.source:
            return asyncio.run(
                load_discovery(service, store, FetchSource(args.source), args.page)
            )

        for action in ("shortlist", "confirm", "return", "remove"):
            book_id = getattr(args, action)
            if book_id:
                return move_book(store, action, book_id)

        if args.budget:
            return show_budget(service, store)

    except AcquisitionError as e:
        logger.exception(f"Failed: {e}")
        return 1

    # Default: show help
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
