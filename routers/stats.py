from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from dependencies import get_state_store
from repository.game_state_repo import StateStore
from schemas.game_state_schema import GameStats
from utils import game_state_validation

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/me", response_model=GameStats)
def get_my_stats(store: Annotated[StateStore, Depends(get_state_store)]):
    return store.load_stats()


@router.post("/me/{game_date}", response_model=GameStats)
def record_finished_day(game_date: date, store: Annotated[StateStore, Depends(get_state_store)]):
    """Adds a finished day to the player's stats, using the stored state as the source of truth."""
    state = store.load(game_date)
    if not game_state_validation.is_game_completed(state):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Game for this day is not finished")
    return store.update_stats(game_state_validation.is_game_won(state), game_date)
