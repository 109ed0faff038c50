"""API routes for flashcard CRUD, tags, export/import and generation."""

import logging
from typing import Any, Literal

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.deps import get_store, get_writer
from backend.api.schemas import (
    FlashcardResponse,
    FlashcardUpdateRequest,
    GenerateRequest,
    ImportRequest,
    ImportResponse,
)
from backend.config import utcnow
from backend.database import get_session
from backend.export import ImportValidationError, export_collection, import_collection
from backend.generation import FlashcardGenerator
from backend.llm_client import LLMClient, get_llm_client
from backend.persistence import SnapshotWriter
from backend.srs.flashcard import InvalidCardPayloadError
from backend.srs.store import FlashcardStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/flashcards", tags=["flashcards"])


@router.get("", response_model=list[FlashcardResponse])
async def list_flashcards(
    tags: list[str] = Query(default=[]),
    match: Literal["any", "all"] = "all",
    due: bool = False,
    store: FlashcardStore = Depends(get_store),
) -> list[FlashcardResponse]:
    """List cards, newest first.

    ``match=all`` keeps cards carrying every tag (no tags lists everything);
    ``match=any`` keeps cards carrying at least one. ``due`` narrows the
    result to cards due now.
    """
    if match == "any":
        cards = store.get_cards_by_tag(tags)
    else:
        cards = store.get_cards_with_all_tags(tags)
    if due:
        now = utcnow()
        cards = [c for c in cards if c.is_due(now)]
    return [FlashcardResponse.from_card(c) for c in cards]


@router.get("/tags", response_model=list[str])
async def list_tags(store: FlashcardStore = Depends(get_store)) -> list[str]:
    return store.all_tags()


@router.get("/export")
async def export_flashcards(store: FlashcardStore = Depends(get_store)) -> dict:
    return export_collection(store)


@router.get("/{card_id}", response_model=FlashcardResponse)
async def get_flashcard(card_id: str, store: FlashcardStore = Depends(get_store)) -> FlashcardResponse:
    card = store.get_flashcard(card_id)
    if card is None:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return FlashcardResponse.from_card(card)


@router.post("", response_model=FlashcardResponse, status_code=201)
async def create_flashcard(
    payload: dict[str, Any] = Body(...),
    store: FlashcardStore = Depends(get_store),
    writer: SnapshotWriter = Depends(get_writer),
    db: AsyncSession = Depends(get_session),
) -> FlashcardResponse:
    """Create one card from an untyped payload."""
    try:
        card = store.add_flashcard(payload)
    except InvalidCardPayloadError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    await writer.flush(db)
    return FlashcardResponse.from_card(card)


@router.post("/batch", response_model=list[FlashcardResponse], status_code=201)
async def create_flashcards(
    payloads: list[dict[str, Any]] = Body(...),
    store: FlashcardStore = Depends(get_store),
    writer: SnapshotWriter = Depends(get_writer),
    db: AsyncSession = Depends(get_session),
) -> list[FlashcardResponse]:
    """Create several cards at once; one invalid payload rejects the batch."""
    try:
        cards = store.add_flashcards(payloads)
    except InvalidCardPayloadError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    await writer.flush(db)
    return [FlashcardResponse.from_card(c) for c in cards]


@router.patch("/{card_id}", response_model=FlashcardResponse)
async def update_flashcard(
    card_id: str,
    request: FlashcardUpdateRequest,
    store: FlashcardStore = Depends(get_store),
    writer: SnapshotWriter = Depends(get_writer),
    db: AsyncSession = Depends(get_session),
) -> FlashcardResponse:
    try:
        card = store.update_flashcard(card_id, **request.changes())
    except InvalidCardPayloadError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if card is None:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    await writer.flush(db)
    return FlashcardResponse.from_card(card)


@router.delete("/{card_id}")
async def delete_flashcard(
    card_id: str,
    store: FlashcardStore = Depends(get_store),
    writer: SnapshotWriter = Depends(get_writer),
    db: AsyncSession = Depends(get_session),
) -> dict:
    deleted = store.delete_flashcard(card_id)
    await writer.flush(db)
    return {"deleted": deleted}


@router.post("/import", response_model=ImportResponse)
async def import_flashcards(
    request: ImportRequest,
    store: FlashcardStore = Depends(get_store),
    writer: SnapshotWriter = Depends(get_writer),
    db: AsyncSession = Depends(get_session),
) -> ImportResponse:
    try:
        result = import_collection(store, request.data, mode=request.mode)
    except ImportValidationError as exc:
        logger.warning("Import rejected: %s", exc)
        raise HTTPException(status_code=400, detail=exc.errors) from exc
    await writer.flush(db)
    return ImportResponse(
        imported=result.imported,
        removed=result.removed,
        errors=result.errors,
        message=result.message,
    )


@router.post("/generate", response_model=list[FlashcardResponse], status_code=201)
async def generate_flashcards(
    request: GenerateRequest,
    store: FlashcardStore = Depends(get_store),
    writer: SnapshotWriter = Depends(get_writer),
    db: AsyncSession = Depends(get_session),
    llm: LLMClient = Depends(get_llm_client),
) -> list[FlashcardResponse]:
    """Generate cards from text with the LLM and add them to the collection."""
    generator = FlashcardGenerator(llm)
    specs = await run_in_threadpool(
        generator.generate,
        request.content,
        count=request.count,
        extra_tags=request.tags,
        source_platform=request.source_platform,
        source_url=request.source_url,
        source_note_id=request.source_note_id,
    )
    cards = store.add_flashcards(specs)
    await writer.flush(db)
    return [FlashcardResponse.from_card(c) for c in cards]
