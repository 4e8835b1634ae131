from typing import Annotated

from fastapi import APIRouter, Depends

from dependencies import get_state_store
from repository.game_state_repo import StateStore
from schemas.game_state_schema import UserSettings

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/me", response_model=UserSettings, response_model_exclude_none=True)
def get_my_settings(store: Annotated[StateStore, Depends(get_state_store)]):
    return store.load_settings()


@router.put("/me", response_model=UserSettings, response_model_exclude_none=True)
def update_my_settings(
    user_settings: UserSettings,
    store: Annotated[StateStore, Depends(get_state_store)],
):
    """Only the preferences sent are changed; the rest keep their stored value."""
    current = store.load_settings()
    updated = current.model_copy(update=user_settings.model_dump(exclude_unset=True))
    store.save_settings(updated)
    return updated
