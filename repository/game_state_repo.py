import json
import logging
from collections.abc import Mapping
from datetime import date, timedelta
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from repository.kv_store import KeyValueStore
from schemas.game_state_schema import DataSummary, GameState, GameStats, UserSettings
from utils import game_state_validation

logger = logging.getLogger(__name__)

# Fallos de persistencia: se loguean y nunca llegan al caller
PERSISTENCE_ERRORS = (SQLAlchemyError, ValueError, TypeError)


class StateStore:
    """
    Persistence adapter for daily game states.

    Every read and every write goes through the normalizer, so whatever was
    stored before (old schema, partial write, bug) comes back consistent.
    Storage problems are logged and treated as "no saved state".
    """

    def __init__(self, store: KeyValueStore, *, prefix: str = "frameguessr", retention_days: int = 30):
        self.store = store
        self.prefix = prefix
        self.retention_days = retention_days
        self.settings_key = f"{prefix}-settings"
        self.stats_key = f"{prefix}-stats"

    def key_for(self, day: date | str) -> str:
        day_str = day.isoformat() if isinstance(day, date) else day
        return f"{self.prefix}-{day_str}"

    def date_from_key(self, key: str) -> Optional[date]:
        """Embedded day of a per-day key; None for settings, stats or foreign keys."""
        head = f"{self.prefix}-"
        if not key.startswith(head) or key in (self.settings_key, self.stats_key):
            return None
        suffix = key[len(head):]
        if len(suffix) != 10:
            return None
        try:
            return date.fromisoformat(suffix)
        except ValueError:
            return None

    def load(self, day: date | str) -> Optional[GameState]:
        key = self.key_for(day)
        try:
            payload = self.store.get(key)
            if payload is None:
                return None
            raw = json.loads(payload)
        except PERSISTENCE_ERRORS as e:
            logger.error(f"Failed to load game state {key}: {e}")
            return None

        result = game_state_validation.normalize(raw, date_hint=day, log_issues=True)
        if result.validated_state is None:
            logger.warning(f"Discarded unusable game state {key}: {result.issues}")
        return result.validated_state

    def save(self, day: date | str, state: Any) -> None:
        key = self.key_for(day)
        result = game_state_validation.normalize(state, date_hint=day, log_issues=True)
        if result.validated_state is None:
            logger.warning(f"Refused to save game state {key}: {result.issues}")
            return

        try:
            payload = json.dumps(result.validated_state.model_dump(by_alias=True))
            self.store.set(key, payload)
        except PERSISTENCE_ERRORS as e:
            logger.error(f"Failed to save game state {key}: {e}")

    def reset(self, day: date | str) -> bool:
        """Forgets the stored game for a day; the day reads as unplayed afterwards."""
        key = self.key_for(day)
        try:
            deleted = self.store.delete(key)
        except PERSISTENCE_ERRORS as e:
            logger.error(f"Failed to reset game state {key}: {e}")
            return False
        if deleted:
            logger.info(f"Reset game state {key}")
        return deleted

    def list_dates(self) -> list[str]:
        try:
            keys = self.store.keys()
        except PERSISTENCE_ERRORS as e:
            logger.error(f"Failed to list stored games: {e}")
            return []
        days = [self.date_from_key(k) for k in keys]
        return sorted(d.isoformat() for d in days if d is not None)

    def cleanup_old_games(self, today: date) -> int:
        """
        Retention sweep: deletes per-day records older than the retention
        window. Keys without a parseable date are left alone.
        """
        cutoff = today - timedelta(days=self.retention_days)
        deleted = 0
        try:
            for key in self.store.keys():
                day = self.date_from_key(key)
                if day is not None and day < cutoff:
                    if self.store.delete(key):
                        deleted += 1
        except PERSISTENCE_ERRORS as e:
            logger.error(f"Failed to clean up old games: {e}")

        if deleted:
            logger.info(f"Retention sweep removed {deleted} games older than {cutoff.isoformat()}")
        return deleted

    def get_data_summary(self) -> DataSummary:
        completed = 0
        in_progress = 0
        for day in self.list_dates():
            state = self.load(day)
            if not game_state_validation.has_progress(state):
                continue
            if state.completed:
                completed += 1
            else:
                in_progress += 1
        return DataSummary(games=completed + in_progress, completed=completed, in_progress=in_progress)

    # === Preferencias ===

    def load_settings(self) -> UserSettings:
        try:
            payload = self.store.get(self.settings_key)
            return UserSettings.model_validate(json.loads(payload)) if payload else UserSettings()
        except PERSISTENCE_ERRORS as e:
            logger.error(f"Failed to load settings: {e}")
            return UserSettings()

    def save_settings(self, user_settings: UserSettings) -> None:
        try:
            self.store.set(self.settings_key, json.dumps(user_settings.model_dump(by_alias=True, exclude_none=True)))
        except PERSISTENCE_ERRORS as e:
            logger.error(f"Failed to save settings: {e}")

    # === Estadísticas ===

    def load_stats(self) -> GameStats:
        try:
            payload = self.store.get(self.stats_key)
            return GameStats.model_validate(json.loads(payload)) if payload else GameStats()
        except PERSISTENCE_ERRORS as e:
            logger.error(f"Failed to load stats: {e}")
            return GameStats()

    def update_stats(self, won: bool, day: date | str) -> GameStats:
        """Counts a finished day once; wins on consecutive days extend the streak."""
        stats = self.load_stats()
        today = date.fromisoformat(day) if isinstance(day, str) else day
        today_str = today.isoformat()

        if stats.last_played_date == today_str:
            return stats

        stats.games_played += 1
        if won:
            stats.games_won += 1
            yesterday = (today - timedelta(days=1)).isoformat()
            stats.current_streak = stats.current_streak + 1 if stats.last_played_date == yesterday else 1
            stats.max_streak = max(stats.max_streak, stats.current_streak)
        else:
            stats.current_streak = 0
        stats.last_played_date = today_str

        try:
            self.store.set(self.stats_key, json.dumps(stats.model_dump(by_alias=True)))
        except PERSISTENCE_ERRORS as e:
            logger.error(f"Failed to update stats: {e}")
        return stats

    # === Export / import ===

    def export_data(self) -> dict[str, Any]:
        data = {}
        try:
            for key in self.store.keys():
                if not key.startswith(self.prefix):
                    continue
                payload = self.store.get(key)
                if payload:
                    data[key] = json.loads(payload)
        except PERSISTENCE_ERRORS as e:
            logger.error(f"Failed to export game data: {e}")
            return {}
        return data

    def import_data(self, data: Any) -> bool:
        """
        Imports an export. Per-day entries are normalized and merged with what
        is already stored, so an older export never undoes progress.
        """
        if not isinstance(data, Mapping):
            logger.error(f"Failed to import game data: expected an object, got {type(data).__name__}")
            return False

        try:
            for key, value in data.items():
                if not isinstance(key, str) or not key.startswith(self.prefix):
                    continue
                day = self.date_from_key(key)
                if day is not None:
                    incoming = game_state_validation.normalized_only(value, date_hint=day)
                    merged = game_state_validation.merge_game_states(incoming, self.load(day))
                    if merged is not None:
                        self.save(day, merged)
                else:
                    self.store.set(key, json.dumps(value))
        except PERSISTENCE_ERRORS as e:
            logger.error(f"Failed to import game data: {e}")
            return False
        return True
