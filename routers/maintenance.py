from datetime import date
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from dependencies import get_state_store
from repository.game_state_repo import StateStore
from schemas.game_state_schema import CleanupResponse

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.post("/cleanup", response_model=CleanupResponse)
def cleanup_old_games(
    store: Annotated[StateStore, Depends(get_state_store)],
    today: Optional[date] = Query(default=None),
):
    """Retention sweep over the player's stored days."""
    return CleanupResponse(deleted=store.cleanup_old_games(today or date.today()))


@router.get("/export")
def export_game_data(store: Annotated[StateStore, Depends(get_state_store)]):
    return store.export_data()


@router.post("/import")
def import_game_data(
    store: Annotated[StateStore, Depends(get_state_store)],
    payload: Annotated[Any, Body()] = None,
):
    if not store.import_data(payload):
        raise HTTPException(status_code=400, detail="Invalid game data export")
    return {"imported": True}
