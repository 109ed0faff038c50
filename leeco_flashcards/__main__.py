"""CLI interface for LeeCo flashcards.

Usage:
    python -m leeco_flashcards review               Review all due cards
    python -m leeco_flashcards review -t graphs     Review due cards tagged "graphs"
    python -m leeco_flashcards stats                Show collection statistics
    python -m leeco_flashcards due                  Show how many cards are due
    python -m leeco_flashcards add "front" "back"   Add a card
    python -m leeco_flashcards list -t dp -t arrays List cards carrying every tag
    python -m leeco_flashcards delete CARD_ID       Delete a card
    python -m leeco_flashcards export cards.json    Export the collection
    python -m leeco_flashcards import cards.json    Import an export file
    python -m leeco_flashcards generate notes.txt   Generate cards from text with the LLM
"""

import argparse
import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from backend.config import settings
from backend.database import async_session, engine
from backend.export import ImportValidationError, export_collection, import_collection
from backend.generation import FlashcardGenerator
from backend.llm_client import get_llm_client
from backend.models import Base
from backend.persistence import SnapshotWriter, load_store
from backend.srs.flashcard import Flashcard, InvalidCardPayloadError
from backend.srs.sm2 import MAX_QUALITY, MIN_QUALITY
from backend.srs.store import FlashcardStore

QUALITY_LABELS = ["Again", "Hard", "Good", "Easy", "Perfect", "Too Easy"]


async def ensure_db() -> None:
    """Create tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def open_store() -> AsyncIterator[FlashcardStore]:
    """Load the store and save it back if the command changed anything."""
    await ensure_db()
    async with async_session() as db:
        store = await load_store(db, settings.snapshot_key)
        writer = SnapshotWriter(store, settings.snapshot_key)
        try:
            yield store
        finally:
            await writer.flush(db)
            writer.close()


def _card_line(card: Flashcard) -> str:
    tags = f" [{', '.join(card.tags)}]" if card.tags else ""
    return (
        f"  {card.id}  {card.front[:50]:<50}  "
        f"reviews={card.review_count} ease={card.ease_factor:.2f} "
        f"next={card.next_review_date:%Y-%m-%d}{tags}"
    )


def _ask_quality() -> int | str:
    """Prompt until the user gives 0-5 or a navigation key."""
    while True:
        raw = input(f"  Quality [{MIN_QUALITY}-{MAX_QUALITY}], n=next p=prev q=quit: ").strip().lower()
        if raw in ("n", "p", "q"):
            return raw
        if raw.isdigit() and MIN_QUALITY <= int(raw) <= MAX_QUALITY:
            return int(raw)


async def cmd_review(args: argparse.Namespace) -> None:
    """Run an interactive review session."""
    async with open_store() as store:
        card_ids = store.due_card_ids_for_tags(args.tags) if args.tags else None
        store.start_review_session(card_ids)
        total = len(store.session_cards)

        if not total:
            store.end_review_session()
            print("\nNo cards due for review. You're all caught up!")
            return

        print(f"\n  Review Session: {total} cards")
        print("  " + "  ".join(f"{i}={label}" for i, label in enumerate(QUALITY_LABELS)))
        print()

        while store.current_session is not None:
            index = store.current_card_index
            card = store.current_card()
            if card is None:
                # Deleted since the session started
                if index == total - 1:
                    break
                store.next_card()
                continue

            print(f"  [{index + 1}/{total}] {card.front}")
            start_time = time.time()
            input("  (press enter to show the answer)")
            print(f"  {card.back}\n")

            choice = _ask_quality()
            if choice == "q":
                print("\n  Session ended early.")
                break
            if choice == "n":
                store.next_card()
                continue
            if choice == "p":
                store.previous_card()
                continue

            response_ms = int((time.time() - start_time) * 1000)
            updated = store.review_flashcard(card.id, choice, response_time_ms=response_ms)
            if updated is not None:
                print(f"  Next review in {updated.interval_days} days\n")
            if index >= total - 1:
                break
            store.next_card()

        session = store.end_review_session()

    if session is not None and session.flashcards_reviewed:
        print("\n  Session Complete!")
        print(
            f"  Reviewed: {session.flashcards_reviewed}  Correct: {session.correct_answers}"
            f"  Accuracy: {session.accuracy * 100:.0f}%\n"
        )


async def cmd_stats(args: argparse.Namespace) -> None:
    """Show collection statistics."""
    async with open_store() as store:
        stats = store.get_stats()

    print("\n  Flashcard Statistics")
    print(f"  {'Total cards:':<22} {stats.total}")
    print(f"  {'Due now:':<22} {stats.due_today}")
    print(f"  {'Reviewed today:':<22} {stats.reviewed_today}")
    print(f"  {'Mastered:':<22} {stats.mastered_cards}")
    print(f"  {'Average ease:':<22} {stats.average_ease_factor:.2f}")
    print()


async def cmd_due(args: argparse.Namespace) -> None:
    """Show how many cards are due."""
    async with open_store() as store:
        due = store.get_due_cards()
    print(f"  {len(due)} cards due")


async def cmd_add(args: argparse.Namespace) -> None:
    """Add a new card, due immediately."""
    payload = {
        "front": args.front,
        "back": args.back,
        "type": args.type,
        "difficulty": args.difficulty,
        "tags": args.tags,
        "source_url": args.source_url,
    }
    async with open_store() as store:
        try:
            card = store.add_flashcard(payload)
        except InvalidCardPayloadError as exc:
            print(f"  Could not add card: {exc}")
            return
    print("  Added (card ready for review):")
    print(_card_line(card))


async def cmd_list(args: argparse.Namespace) -> None:
    """List cards, optionally filtered by tags."""
    async with open_store() as store:
        if args.any:
            cards = store.get_cards_by_tag(args.tags)
        else:
            cards = store.get_cards_with_all_tags(args.tags)
    if not cards:
        print("  No matching cards.")
        return
    for card in cards:
        print(_card_line(card))


async def cmd_delete(args: argparse.Namespace) -> None:
    async with open_store() as store:
        deleted = store.delete_flashcard(args.card_id)
    print(f"  Deleted {args.card_id}" if deleted else f"  No card {args.card_id}")


async def cmd_export(args: argparse.Namespace) -> None:
    """Write the collection to a JSON file."""
    async with open_store() as store:
        data = export_collection(store)
    Path(args.path).write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    print(f"  Exported {len(data['flashcards'])} cards to {args.path}")


async def cmd_import(args: argparse.Namespace) -> None:
    """Import cards from an export file."""
    data = json.loads(Path(args.path).read_text(encoding="utf-8"))
    async with open_store() as store:
        try:
            result = import_collection(store, data, mode=args.mode)
        except ImportValidationError as exc:
            print("  Import rejected:")
            for error in exc.errors:
                print(f"    - {error}")
            return
    print(f"  {result.message}")
    for error in result.errors:
        print(f"    - {error}")


async def cmd_generate(args: argparse.Namespace) -> None:
    """Generate cards from a text file and add them."""
    content = Path(args.path).read_text(encoding="utf-8")
    generator = FlashcardGenerator(get_llm_client())
    specs = await asyncio.to_thread(
        generator.generate,
        content,
        count=args.count,
        extra_tags=args.tags,
        source_platform=args.platform,
        source_url=args.source_url,
    )
    async with open_store() as store:
        cards = store.add_flashcards(specs)
    print(f"  Generated {len(cards)} cards:")
    for card in cards:
        print(_card_line(card))


def main() -> None:
    """Entry point for the flashcard CLI."""
    parser = argparse.ArgumentParser(
        prog="leeco_flashcards",
        description="SM-2 flashcard reviews from the command line",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # review
    review_parser = subparsers.add_parser("review", help="Review due cards")
    review_parser.add_argument("-t", "--tag", dest="tags", action="append", default=[],
                               help="Only due cards with any of these tags")

    # stats / due
    subparsers.add_parser("stats", help="Show collection statistics")
    subparsers.add_parser("due", help="Show cards due for review")

    # add
    add_parser = subparsers.add_parser("add", help="Add a new card")
    add_parser.add_argument("front", help="Question or prompt")
    add_parser.add_argument("back", help="Answer or explanation")
    add_parser.add_argument("--type", default="concept", help="concept, definition, code, problem or fact")
    add_parser.add_argument("--difficulty", default="medium", help="easy, medium or hard")
    add_parser.add_argument("-t", "--tag", dest="tags", action="append", default=[])
    add_parser.add_argument("--source-url", default=None)

    # list
    list_parser = subparsers.add_parser("list", help="List cards")
    list_parser.add_argument("-t", "--tag", dest="tags", action="append", default=[])
    list_parser.add_argument("--any", action="store_true", help="Match any tag instead of all")

    # delete
    delete_parser = subparsers.add_parser("delete", help="Delete a card")
    delete_parser.add_argument("card_id")

    # export / import
    export_parser = subparsers.add_parser("export", help="Export the collection to JSON")
    export_parser.add_argument("path")
    import_parser = subparsers.add_parser("import", help="Import cards from an export file")
    import_parser.add_argument("path")
    import_parser.add_argument("--mode", choices=["merge", "replace"], default="merge")

    # generate
    generate_parser = subparsers.add_parser("generate", help="Generate cards from a text file")
    generate_parser.add_argument("path")
    generate_parser.add_argument("-n", "--count", type=int, default=None)
    generate_parser.add_argument("-t", "--tag", dest="tags", action="append", default=[])
    generate_parser.add_argument("--platform", choices=["leetcode", "youtube", "general"], default=None)
    generate_parser.add_argument("--source-url", default=None)

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return

    cmd_map = {
        "review": cmd_review,
        "stats": cmd_stats,
        "due": cmd_due,
        "add": cmd_add,
        "list": cmd_list,
        "delete": cmd_delete,
        "export": cmd_export,
        "import": cmd_import,
        "generate": cmd_generate,
    }

    asyncio.run(cmd_map[args.command](args))


if __name__ == "__main__":
    main()
