"""API routes for collection statistics."""

from fastapi import APIRouter, Depends

from backend.api.deps import get_store
from backend.api.schemas import FlashcardResponse, StatsResponse
from backend.srs.store import FlashcardStore

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("", response_model=StatsResponse)
async def get_stats(store: FlashcardStore = Depends(get_store)) -> StatsResponse:
    """Totals, due and reviewed-today counts, mastery and average ease."""
    return StatsResponse.from_stats(store.get_stats())


@router.get("/due", response_model=list[FlashcardResponse])
async def get_due_cards(store: FlashcardStore = Depends(get_store)) -> list[FlashcardResponse]:
    return [FlashcardResponse.from_card(card) for card in store.get_due_cards()]
