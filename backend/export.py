"""Export and import of flashcard collections as JSON documents.

Exports carry every card with its scheduling state. Imports re-create
cards through the payload boundary, so imported cards start fresh
(immediately due, default ease) regardless of what the file contains.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from backend.config import utcnow
from backend.srs.flashcard import CardSpec, InvalidCardPayloadError, card_spec_from_payload
from backend.srs.store import FlashcardStore

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0.0"
IMPORT_MODES = ("merge", "replace")


class ImportValidationError(ValueError):
    """Raised when an import document is rejected as a whole."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


@dataclass
class ImportResult:
    """Outcome of an import: how many cards landed and what was skipped."""

    imported: int = 0
    removed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Imported {self.imported} flashcards ({len(self.errors)} skipped)."


def export_collection(store: FlashcardStore, now: datetime | None = None) -> dict[str, Any]:
    now = now or utcnow()
    stats = store.get_stats(now)
    return {
        "version": EXPORT_VERSION,
        "exported_at": now.isoformat(),
        "flashcards": [card.to_dict() for card in store.flashcards],
        "metadata": {
            "total_flashcards": stats.total,
            "mastered_cards": stats.mastered_cards,
            "tags": store.all_tags(),
        },
    }


def is_version_compatible(version: str) -> bool:
    """Only the major version has to match."""
    try:
        major = int(str(version).split(".")[0])
    except ValueError:
        return False
    return major == int(EXPORT_VERSION.split(".")[0])


def validate_export(data: Any) -> list[str]:
    """Return the problems that make ``data`` unimportable (empty if fine)."""
    if not isinstance(data, dict):
        return ["Export must be a JSON object"]

    errors: list[str] = []
    version = data.get("version")
    if not version:
        errors.append("Missing version")
    elif not is_version_compatible(version):
        errors.append(f"Incompatible export version {version} (expected {EXPORT_VERSION})")
    if not isinstance(data.get("flashcards"), list):
        errors.append("Invalid flashcards data format")
    return errors


def import_collection(
    store: FlashcardStore,
    data: Any,
    mode: str = "merge",
    now: datetime | None = None,
) -> ImportResult:
    """Add the cards from an export document to the store.

    Args:
        store: Target store.
        data: Parsed export document.
        mode: "merge" keeps existing cards; "replace" deletes them first.
        now: Creation time for the imported cards.

    Raises:
        ImportValidationError: If the document or mode is invalid. Nothing
            is changed in that case.
    """
    if mode not in IMPORT_MODES:
        raise ImportValidationError([f"Unknown import mode {mode!r}"])
    errors = validate_export(data)
    if errors:
        raise ImportValidationError(errors)

    result = ImportResult()
    specs: list[CardSpec] = []
    for position, item in enumerate(data["flashcards"]):
        try:
            specs.append(card_spec_from_payload(item))
        except InvalidCardPayloadError as exc:
            result.errors.append(f"Card {position}: {exc}")

    if mode == "replace":
        for card in store.flashcards:
            store.delete_flashcard(card.id)
            result.removed += 1

    result.imported = len(store.add_flashcards(specs, now=now))
    logger.info(
        "Imported %d flashcards (%s mode, %d removed, %d skipped)",
        result.imported,
        mode,
        result.removed,
        len(result.errors),
    )
    return result
