from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Request

from config import settings
from dependencies import get_state_store
from repository.game_state_repo import StateStore
from schemas.game_state_schema import (
    GameListResponse,
    GameState,
    GameStateResponse,
    GuessRequest,
    SyncResponse,
    ValidationResult,
)
from utils import game_state_validation, game_status
from utils.limiter import limiter

router = APIRouter(
    prefix="/game-state",
    tags=["Game State"]
)


def _state_response(game_date: date, state: GameState | None) -> GameStateResponse:
    return GameStateResponse(**_state_fields(game_date, state))


def _state_fields(game_date: date, state: GameState | None) -> dict:
    return {
        "date": game_date.isoformat(),
        "state": state,
        "status": game_state_validation.get_game_status(state),
        "info": game_status.get_game_status_info(state),
        "progress": game_status.get_game_progress(state),
        "resume_message": game_status.get_resumption_message(state),
    }


@router.get("", response_model=GameListResponse)
def list_game_states(store: Annotated[StateStore, Depends(get_state_store)]):
    return GameListResponse(dates=store.list_dates(), summary=store.get_data_summary())


@router.post("/validate", response_model=ValidationResult)
def validate_game_state(payload: Annotated[Any, Body()] = None):
    """Dry run: repairs the given state and reports the issues, nothing is stored."""
    return game_state_validation.normalize(payload)


@router.get("/{game_date}", response_model=GameStateResponse)
def get_game_state(game_date: date, store: Annotated[StateStore, Depends(get_state_store)]):
    # Sin estado guardado -> state null / "unplayed", no es un error
    return _state_response(game_date, store.load(game_date))


@router.put("/{game_date}", response_model=ValidationResult)
@limiter.limit(settings.RATE_LIMIT_WRITES)
def save_game_state(
    request: Request,
    game_date: date,
    store: Annotated[StateStore, Depends(get_state_store)],
    payload: Annotated[Any, Body()] = None,
):
    result = game_state_validation.normalize(payload, date_hint=game_date)
    # Un estado en blanco no pisa lo guardado; para borrar está DELETE
    if game_state_validation.is_worth_saving(result.validated_state):
        store.save(game_date, result.validated_state)
    return result


@router.post("/{game_date}/guess", response_model=GameStateResponse)
@limiter.limit(settings.RATE_LIMIT_WRITES)
def guess_game_state(
    request: Request,
    game_date: date,
    guess: GuessRequest,
    store: Annotated[StateStore, Depends(get_state_store)],
):
    current = store.load(game_date) or game_state_validation.create_default_game_state(game_date)
    updated = game_state_validation.state_after_guess(
        current,
        title=guess.title,
        subject_id=guess.subject_id,
        media_kind=guess.media_kind,
        correct=guess.correct,
    )
    store.save(game_date, updated)
    return _state_response(game_date, updated)


@router.post("/{game_date}/skip", response_model=GameStateResponse)
@limiter.limit(settings.RATE_LIMIT_WRITES)
def skip_hint(
    request: Request,
    game_date: date,
    store: Annotated[StateStore, Depends(get_state_store)],
):
    current = store.load(game_date) or game_state_validation.create_default_game_state(game_date)
    updated = game_state_validation.state_after_skip(current)
    store.save(game_date, updated)
    return _state_response(game_date, updated)


@router.delete("/{game_date}", response_model=GameStateResponse)
@limiter.limit(settings.RATE_LIMIT_WRITES)
def reset_game_state(
    request: Request,
    game_date: date,
    store: Annotated[StateStore, Depends(get_state_store)],
):
    store.reset(game_date)
    return _state_response(game_date, None)


@router.post("/{game_date}/sync", response_model=SyncResponse)
@limiter.limit(settings.RATE_LIMIT_WRITES)
def sync_game_state(
    request: Request,
    game_date: date,
    store: Annotated[StateStore, Depends(get_state_store)],
    payload: Annotated[Any, Body()] = None,
):
    """
    Brings a locally played snapshot into the account. The stored game only
    changes when the local one has real progress the account is missing.
    """
    local = game_state_validation.normalized_only(payload, date_hint=game_date)
    stored = store.load(game_date)

    merged = stored
    if game_state_validation.has_meaningful_progress(local) and game_status.should_import_game_data(local, stored):
        merged = game_state_validation.merge_game_states(local, stored)

    imported = merged != stored
    if imported:
        store.save(game_date, merged)
    return SyncResponse(**_state_fields(game_date, merged), imported=imported)
