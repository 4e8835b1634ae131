# -*- coding: utf-8 -*-
"""
Game status presentation helpers.

Todo pasa primero por el normalizador: lo que se muestra al jugador nunca
sale de un estado inconsistente.
"""
from typing import Any, Optional

from schemas.game_state_schema import GameState, GameStatusInfo
from utils.game_state_validation import MAX_HINT_LEVEL, normalized_only


def get_game_status_info(state: Any) -> GameStatusInfo:
    validated = normalized_only(state)

    if validated is None or validated.attempts == 0:
        return GameStatusInfo(
            status="unplayed",
            completion="incomplete",
            attempts=0,
            can_resume=False,
            display_text="Not started",
        )

    if validated.completed:
        if validated.won:
            return GameStatusInfo(
                status="completed",
                completion="won",
                attempts=validated.attempts,
                can_resume=False,
                display_text=f"Won in {validated.attempts}",
            )
        return GameStatusInfo(
            status="completed",
            completion="lost",
            attempts=validated.attempts,
            can_resume=False,
            display_text="Lost",
        )

    plural = "" if validated.attempts == 1 else "s"
    return GameStatusInfo(
        status="partial",
        completion="incomplete",
        attempts=validated.attempts,
        can_resume=True,
        display_text=f"{validated.attempts} attempt{plural}",
    )


def can_resume_game(state: Any) -> bool:
    validated = normalized_only(state)
    return bool(validated and not validated.completed and validated.attempts > 0)


def get_resumption_message(state: Any) -> str:
    if not can_resume_game(state):
        return ""

    validated = normalized_only(state)
    attempts_remaining = validated.max_attempts - validated.attempts
    noun = "attempt" if attempts_remaining == 1 else "attempts"
    return f"Continue from scene {validated.current_hint_level}. {attempts_remaining} {noun} remaining."


def get_game_progress(state: Any) -> float:
    """
    Progress percentage: 60% for reaching the last hint, 40% for attempts made.
    Unfinished games never report more than 95.
    """
    validated = normalized_only(state)
    if validated is None:
        return 0
    if validated.completed:
        return 100

    hint_progress = (validated.current_hint_level - 1) / (MAX_HINT_LEVEL - 1) * 60
    attempt_progress = validated.attempts / validated.max_attempts * 40
    return min(hint_progress + attempt_progress, 95)


def should_import_game_data(local: GameState, account: Optional[GameState] = None) -> bool:
    """Whether a locally played day should overwrite what the account already has."""
    local_info = get_game_status_info(local)
    if account is None:
        return local_info.attempts > 0

    account_info = get_game_status_info(account)

    if local_info.completion == "won" and account_info.completion != "won":
        return True

    if local_info.attempts > account_info.attempts:
        return True

    if local_info.status == "partial" and account_info.status == "partial":
        return normalized_only(local).current_hint_level > normalized_only(account).current_hint_level

    return False
