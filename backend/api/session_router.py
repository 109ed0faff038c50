"""API routes for the review session."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.deps import get_store, get_writer
from backend.api.schemas import (
    CurrentCardResponse,
    FlashcardResponse,
    ReviewRequest,
    SessionResponse,
    SessionStartRequest,
)
from backend.database import get_session
from backend.persistence import SnapshotWriter
from backend.srs.store import FlashcardStore

router = APIRouter(prefix="/api/session", tags=["session"])


def _session_response(store: FlashcardStore) -> SessionResponse:
    session = store.current_session
    if session is None:
        raise HTTPException(status_code=404, detail="No active session")
    return SessionResponse.from_session(
        session,
        total_cards=len(store.session_cards),
        current_card_index=store.current_card_index,
    )


def _current_card_response(store: FlashcardStore) -> CurrentCardResponse:
    card_id = store.current_card_id
    if card_id is None:
        raise HTTPException(status_code=404, detail="No card in session")
    card = store.current_card()
    return CurrentCardResponse(
        card_id=card_id,
        index=store.current_card_index,
        total_cards=len(store.session_cards),
        card=FlashcardResponse.from_card(card) if card else None,
    )


@router.post("/start", response_model=SessionResponse)
async def session_start(
    request: SessionStartRequest,
    store: FlashcardStore = Depends(get_store),
    writer: SnapshotWriter = Depends(get_writer),
    db: AsyncSession = Depends(get_session),
) -> SessionResponse:
    """Start a session over explicit ids, due cards for tags, or all due cards."""
    if request.card_ids is not None:
        card_ids = request.card_ids
    elif request.tags:
        card_ids = store.due_card_ids_for_tags(request.tags)
    else:
        card_ids = None
    store.start_review_session(card_ids)
    await writer.flush(db)
    return _session_response(store)


@router.get("", response_model=SessionResponse)
async def session_get(store: FlashcardStore = Depends(get_store)) -> SessionResponse:
    return _session_response(store)


@router.get("/current", response_model=CurrentCardResponse)
async def session_current(store: FlashcardStore = Depends(get_store)) -> CurrentCardResponse:
    return _current_card_response(store)


@router.post("/next", response_model=CurrentCardResponse)
async def session_next(
    store: FlashcardStore = Depends(get_store),
    writer: SnapshotWriter = Depends(get_writer),
    db: AsyncSession = Depends(get_session),
) -> CurrentCardResponse:
    store.next_card()
    await writer.flush(db)
    return _current_card_response(store)


@router.post("/previous", response_model=CurrentCardResponse)
async def session_previous(
    store: FlashcardStore = Depends(get_store),
    writer: SnapshotWriter = Depends(get_writer),
    db: AsyncSession = Depends(get_session),
) -> CurrentCardResponse:
    store.previous_card()
    await writer.flush(db)
    return _current_card_response(store)


@router.post("/review", response_model=FlashcardResponse)
async def session_review(
    request: ReviewRequest,
    store: FlashcardStore = Depends(get_store),
    writer: SnapshotWriter = Depends(get_writer),
    db: AsyncSession = Depends(get_session),
) -> FlashcardResponse:
    """Review the card under the cursor. The cursor does not move."""
    card_id = store.current_card_id
    if card_id is None:
        raise HTTPException(status_code=404, detail="No card in session")
    card = store.review_flashcard(
        card_id, request.quality, response_time_ms=request.response_time_ms
    )
    if card is None:
        raise HTTPException(status_code=410, detail="Flashcard was deleted")
    await writer.flush(db)
    return FlashcardResponse.from_card(card)


@router.post("/end", response_model=SessionResponse)
async def session_end(
    store: FlashcardStore = Depends(get_store),
    writer: SnapshotWriter = Depends(get_writer),
    db: AsyncSession = Depends(get_session),
) -> SessionResponse:
    """End the session, whether finished or abandoned."""
    total = len(store.session_cards)
    index = store.current_card_index
    session = store.end_review_session()
    if session is None:
        raise HTTPException(status_code=404, detail="No active session")
    await writer.flush(db)
    return SessionResponse.from_session(session, total_cards=total, current_card_index=index)
