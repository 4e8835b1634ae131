# -*- coding: utf-8 -*-
"""
Game State Validation

Única fuente de verdad para decidir si un estado de partida es válido.
Storage, routers y helpers de estado pasan siempre por `normalize`.

La reparación corre en un orden fijo porque cada paso lee campos que el
paso anterior pudo haber corregido:

  0. fecha del desafío
  1. backfill de attemptLog desde el formato legacy `guesses`
     (1b. reparación de cada intento, 1c. nombres de campos viejos)
  2. cantidad de intentos
  3. won
  4. completed
  5. nivel de pista
  6. maxAttempts por defecto
"""
import logging
import time
import uuid
from collections.abc import Mapping
from datetime import date
from typing import Any, Optional

from config import settings
from schemas.game_state_schema import Attempt, GameState, ValidationResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = settings.GAME_MAX_ATTEMPTS
MAX_HINT_LEVEL = 3

_MISSING = object()
_ATTEMPT_KINDS = ("guess", "skip")
_MEDIA_KINDS = ("movie", "series")
_LEGACY_MEDIA_KINDS = {"tv": "series"}

# Forma canónica (camelCase) y nombres viejos que todavía aparecen en storage
_STATE_FIELDS = ("date", "attempts", "maxAttempts", "attemptLog", "completed", "won", "currentHintLevel", "guesses")
_LEGACY_STATE_FIELDS = {
    "currentDate": "date",
    "allAttempts": "attemptLog",
    "attempt_log": "attemptLog",
    "max_attempts": "maxAttempts",
    "current_hint_level": "currentHintLevel",
}
_ATTEMPT_FIELDS = ("id", "kind", "correct", "title", "subjectId", "mediaKind", "timestamp")
_LEGACY_ATTEMPT_FIELDS = {
    "type": "kind",
    "tmdbId": "subjectId",
    "subject_id": "subjectId",
    "mediaType": "mediaKind",
    "media_kind": "mediaKind",
}


def _pick(raw: Mapping, *keys: str) -> Any:
    """First value present under any of the accepted spellings of a field."""
    for key in keys:
        if key in raw:
            return raw[key]
    return _MISSING


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _is_iso_day(value: Any) -> bool:
    if not isinstance(value, str) or len(value) != 10:
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _shown(value: Any) -> Any:
    return "missing" if value is _MISSING else value


def _field_name_issues(raw: Mapping, known: tuple, legacy: dict, where: str) -> list[str]:
    """Legacy spellings and unknown keys, which the canonical output renames or drops."""
    issues = []
    renamed = [f"{key} → {legacy[key]}" for key in raw if key in legacy]
    if renamed:
        issues.append(f"Upgraded legacy field names in {where}: {', '.join(renamed)}")
    unknown = sorted(str(key) for key in raw if key not in known and key not in legacy)
    if unknown:
        issues.append(f"Dropped unknown fields in {where}: {', '.join(unknown)}")
    return issues


def _attempt_from_guess(guess: Any) -> Any:
    if not isinstance(guess, Mapping):
        return guess
    media = _pick(guess, "mediaType", "mediaKind")
    media = _LEGACY_MEDIA_KINDS.get(media, media) if isinstance(media, str) else media
    subject = _pick(guess, "tmdbId", "subjectId")
    return {
        "id": guess.get("id"),
        "kind": "guess",
        "correct": guess.get("correct"),
        "title": guess.get("title"),
        "subjectId": None if subject is _MISSING else subject,
        "mediaKind": None if media is _MISSING else media,
        "timestamp": guess.get("timestamp"),
    }


def _repair_attempts(entries: list) -> tuple[list[Attempt], list[str]]:
    issues: list[str] = []
    repaired: list[Attempt] = []
    last_timestamp = 0

    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            issues.append(f"Dropped malformed attempt {index}")
            continue

        issues.extend(_field_name_issues(entry, _ATTEMPT_FIELDS, _LEGACY_ATTEMPT_FIELDS, f"attempt {index}"))

        attempt_id = entry.get("id")
        if _as_int(attempt_id) is not None:
            attempt_id = str(attempt_id)
            issues.append(f"Converted numeric id of attempt {index} to text")
        elif not isinstance(attempt_id, str) or not attempt_id:
            attempt_id = f"attempt-{index}"
            issues.append(f"Generated missing id for attempt {index}")

        kind = _pick(entry, "kind", "type")
        if kind not in _ATTEMPT_KINDS:
            issues.append(f"Fixed invalid kind for attempt {index}: {_shown(kind)} → guess")
            kind = "guess"

        timestamp = _as_int(entry.get("timestamp"))
        if timestamp is None:
            # Sin timestamp: hereda el del intento anterior para no romper el orden
            timestamp = last_timestamp
            issues.append(f"Added missing timestamp for attempt {index}")
        last_timestamp = timestamp

        correct = entry.get("correct")
        title = entry.get("title")
        subject = _pick(entry, "subjectId", "subject_id", "tmdbId")
        subject = None if subject is _MISSING else subject
        media = _pick(entry, "mediaKind", "media_kind", "mediaType")
        media = None if media is _MISSING else media

        if kind == "skip":
            if correct is not None and correct is not False:
                issues.append(f"Cleared correct flag on skip attempt {index}")
            if title is not None or subject is not None or media is not None:
                issues.append(f"Cleared guess fields on skip attempt {index}")
            repaired.append(Attempt(id=attempt_id, kind="skip", correct=False, timestamp=timestamp))
            continue

        if not isinstance(correct, bool):
            issues.append(f"Fixed missing correct flag for guess {index}")
            correct = False

        if title is not None and not isinstance(title, str):
            issues.append(f"Dropped invalid title for guess {index}")
            title = None

        if subject is not None:
            subject_id = _as_int(subject)
            if subject_id is None:
                issues.append(f"Dropped invalid subjectId for guess {index}")
            subject = subject_id

        if isinstance(media, str) and media in _LEGACY_MEDIA_KINDS:
            issues.append(f"Upgraded mediaKind for guess {index}: {media} → {_LEGACY_MEDIA_KINDS[media]}")
            media = _LEGACY_MEDIA_KINDS[media]
        elif media is not None and media not in _MEDIA_KINDS:
            issues.append(f"Dropped unknown mediaKind for guess {index}: {media}")
            media = None

        repaired.append(Attempt(
            id=attempt_id,
            kind="guess",
            correct=correct,
            title=title,
            subject_id=subject,
            media_kind=media,
            timestamp=timestamp,
        ))

    return repaired, issues


def normalize(
    state: Any,
    *,
    date_hint: date | str | None = None,
    log_issues: bool = False,
) -> ValidationResult:
    """
    Repairs a possibly malformed game state and reports what was changed.

    Never raises. Absent input (or anything that is not an object) comes back
    with `is_valid=False`, `was_fixed=False` and no validated state: the caller
    must treat the day as unplayed.

    Args:
        state: GameState, raw dict loaded from storage, or None.
        date_hint: authoritative day for the record (the storage key date).
        log_issues: log the repair report at INFO level.
    """
    if isinstance(state, GameState):
        raw = state.model_dump(by_alias=True)
    elif isinstance(state, Mapping):
        raw = state
    else:
        issue = "Game state is missing" if state is None else f"Game state is not an object ({type(state).__name__})"
        return ValidationResult(is_valid=False, was_fixed=False, validated_state=None, issues=[issue])

    issues: list[str] = []

    # 0. Fecha
    hint = date_hint.isoformat() if isinstance(date_hint, date) else date_hint
    stored_date = _pick(raw, "date", "currentDate")
    if hint and stored_date != hint:
        issues.append(f"Fixed date: {_shown(stored_date)} → {hint}")
        day = hint
    elif _is_iso_day(stored_date):
        day = stored_date
    else:
        day = date.today().isoformat()
        issues.append(f"Fixed date: {_shown(stored_date)} → {day}")

    # 1. Backfill desde guesses (formato viejo)
    log_raw = _pick(raw, "attemptLog", "attempt_log", "allAttempts")
    guesses = _pick(raw, "guesses")
    legacy_guesses = guesses if isinstance(guesses, list) else []

    if isinstance(log_raw, list) and log_raw:
        entries = log_raw
        if legacy_guesses:
            # TODO: reconcile when both logs are populated and disagree
            issues.append(f"Ignored {len(legacy_guesses)} legacy guesses; attemptLog is authoritative")
    elif legacy_guesses:
        entries = [_attempt_from_guess(g) for g in legacy_guesses]
        issues.append(f"Migrated {len(legacy_guesses)} legacy guesses to attemptLog")
    else:
        entries = []
        if not isinstance(log_raw, list):
            issues.append("Missing or invalid attemptLog, reset to empty")
    if guesses is not _MISSING and not legacy_guesses:
        issues.append("Dropped empty legacy guesses field")
    issues.extend(_field_name_issues(raw, _STATE_FIELDS, _LEGACY_STATE_FIELDS, "game state"))

    attempt_log, attempt_issues = _repair_attempts(entries)
    issues.extend(attempt_issues)

    # 2. Intentos: nunca menos que el historial registrado.
    # Las entradas descartadas en 1b también cuentan, no se pierde progreso
    declared_attempts = _as_int(_pick(raw, "attempts"))
    attempts = max(max(declared_attempts or 0, 0), len(entries))
    if declared_attempts != attempts:
        issues.append(f"Fixed attempt count: {_shown(_pick(raw, 'attempts'))} → {attempts}")

    # 3. Won
    won = any(a.kind == "guess" and a.correct for a in attempt_log)
    stored_won = _pick(raw, "won")
    if not isinstance(stored_won, bool) or stored_won != won:
        issues.append(f"Fixed won status: {_shown(stored_won)} → {won}")

    # 4. Completed (con los intentos ya reparados)
    declared_max = _as_int(_pick(raw, "maxAttempts", "max_attempts"))
    max_attempts = declared_max if declared_max and declared_max >= 1 else DEFAULT_MAX_ATTEMPTS
    completed = won or attempts >= max_attempts
    stored_completed = _pick(raw, "completed")
    if not isinstance(stored_completed, bool) or stored_completed != completed:
        issues.append(f"Fixed completion status: {_shown(stored_completed)} → {completed}")

    # 5. Nivel de pista
    derived_level = min(attempts + 1, MAX_HINT_LEVEL)
    stored_level = _as_int(_pick(raw, "currentHintLevel", "current_hint_level"))
    if completed and stored_level is not None and 1 <= stored_level <= MAX_HINT_LEVEL:
        hint_level = stored_level
    else:
        hint_level = derived_level
    if stored_level != hint_level:
        issues.append(
            f"Fixed hint level: {_shown(_pick(raw, 'currentHintLevel', 'current_hint_level'))} → {hint_level}"
        )

    # 6. maxAttempts por defecto
    if declared_max is None or declared_max < 1:
        issues.append(f"Set default maxAttempts to {DEFAULT_MAX_ATTEMPTS}")

    validated_state = GameState(
        date=day,
        attempts=attempts,
        max_attempts=max_attempts,
        attempt_log=attempt_log,
        completed=completed,
        won=won,
        current_hint_level=hint_level,
    )

    if log_issues and issues:
        logger.info(f"Fixed {len(issues)} issues in game state for {day}: {issues}")

    return ValidationResult(
        is_valid=not issues,
        was_fixed=bool(issues),
        validated_state=validated_state,
        issues=issues,
    )


def is_valid(state: Any) -> bool:
    return normalize(state).is_valid


def normalized_only(state: Any, *, date_hint: date | str | None = None) -> Optional[GameState]:
    """Validated state without the repair report."""
    return normalize(state, date_hint=date_hint).validated_state


def states_equivalent(a: Any, b: Any) -> bool:
    """
    True when two snapshots represent the same game progress, ignoring
    superficial differences such as timestamp jitter or key order.
    """
    first = normalized_only(a)
    second = normalized_only(b)
    if first is None or second is None:
        return first is None and second is None

    return (
        first.attempts == second.attempts
        and first.completed == second.completed
        and first.won == second.won
        and first.current_hint_level == second.current_hint_level
        and len(first.attempt_log) == len(second.attempt_log)
    )


def create_default_game_state(day: date | str, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> GameState:
    return GameState(
        date=day.isoformat() if isinstance(day, date) else day,
        attempts=0,
        max_attempts=max_attempts,
        attempt_log=[],
        completed=False,
        won=False,
        current_hint_level=1,
    )


# === Estado de la partida ===

def get_game_status(state: Any) -> str:
    validated = normalized_only(state)
    if validated is None or validated.attempts == 0:
        return "unplayed"
    if validated.won:
        return "completed-won"
    if validated.completed:
        return "completed-lost"
    return "in-progress"


def has_progress(state: Any) -> bool:
    validated = normalized_only(state)
    return validated is not None and validated.attempts > 0


def is_worth_saving(state: Any) -> bool:
    return has_progress(state)


def is_game_completed(state: Any) -> bool:
    validated = normalized_only(state)
    return validated is not None and validated.completed


def is_game_won(state: Any) -> bool:
    validated = normalized_only(state)
    return validated is not None and validated.won


def has_meaningful_progress(state: Any) -> bool:
    """Completed, at least one real guess, or the second hint unlocked."""
    if not has_progress(state):
        return False
    validated = normalized_only(state)
    return (
        validated.completed
        or any(a.kind == "guess" for a in validated.attempt_log)
        or validated.current_hint_level >= 2
    )


# === Mutaciones del jugador ===

def _now_ms() -> int:
    return int(time.time() * 1000)


def _append_attempt(current: GameState, attempt: Attempt) -> GameState:
    updated = current.model_copy(update={
        "attempt_log": [*current.attempt_log, attempt],
        "attempts": current.attempts + 1,
    })
    return normalized_only(updated)


def _next_timestamp(current: GameState, timestamp: Optional[int]) -> int:
    ts = _now_ms() if timestamp is None else timestamp
    if current.attempt_log:
        ts = max(ts, current.attempt_log[-1].timestamp)
    return ts


def state_after_guess(
    state: Any,
    *,
    title: str,
    subject_id: int,
    media_kind: str,
    correct: bool,
    timestamp: Optional[int] = None,
) -> Optional[GameState]:
    """
    Logs a guess and returns the resulting normalized state.
    Finished games are returned unchanged.
    """
    current = normalized_only(state)
    if current is None or current.completed:
        return current

    attempt = Attempt(
        id=f"guess-{uuid.uuid4().hex[:12]}",
        kind="guess",
        correct=correct,
        title=title,
        subject_id=subject_id,
        media_kind=_LEGACY_MEDIA_KINDS.get(media_kind, media_kind),
        timestamp=_next_timestamp(current, timestamp),
    )
    return _append_attempt(current, attempt)


def state_after_skip(state: Any, *, timestamp: Optional[int] = None) -> Optional[GameState]:
    """Skips to the next hint, spending one attempt."""
    current = normalized_only(state)
    if current is None or current.completed:
        return current

    attempt = Attempt(
        id=f"skip-{uuid.uuid4().hex[:12]}",
        kind="skip",
        correct=False,
        timestamp=_next_timestamp(current, timestamp),
    )
    return _append_attempt(current, attempt)


def merge_game_states(local: Any, cloud: Any) -> Optional[GameState]:
    """
    Picks the snapshot with more progress.
    Reglas: gana el que ganó, después más intentos, después pista más alta;
    si todo empata, cloud.
    """
    validated_local = normalized_only(local)
    validated_cloud = normalized_only(cloud)
    if validated_local is None:
        return validated_cloud
    if validated_cloud is None:
        return validated_local

    if validated_local.won != validated_cloud.won:
        return validated_local if validated_local.won else validated_cloud
    if validated_local.attempts != validated_cloud.attempts:
        return validated_local if validated_local.attempts > validated_cloud.attempts else validated_cloud
    if validated_local.current_hint_level > validated_cloud.current_hint_level:
        return validated_local
    return validated_cloud
