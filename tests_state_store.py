import json
import unittest
from datetime import date
from unittest.mock import patch

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db import database, models  # noqa: F401
from repository.game_state_repo import StateStore
from repository.kv_store import SqlKeyValueStore
from schemas.game_state_schema import UserSettings

LEGACY_BLOB = {
    "currentDate": "2026-10-10",
    "attempts": 1,
    "maxAttempts": 3,
    "guesses": [{"id": "a", "title": "X", "tmdbId": 5, "mediaType": "movie", "correct": False, "timestamp": 1000}],
    "completed": False,
    "won": False,
    "currentHintLevel": 1,
    "lastModified": 1728000000000,
    "syncStatus": "local-only",
}


class StateStoreTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        database.Base.metadata.create_all(bind=self.engine)
        self.db = sessionmaker(bind=self.engine, autoflush=False)()
        self.kv = SqlKeyValueStore(self.db, "anon-test")
        self.store = StateStore(self.kv, prefix="frameguessr", retention_days=30)

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def played(self, day, attempts=1):
        return {
            "date": day,
            "attempts": attempts,
            "maxAttempts": 3,
            "attemptLog": [{"id": f"s{i}", "kind": "skip", "correct": False, "timestamp": i} for i in range(attempts)],
            "completed": attempts >= 3,
            "won": False,
            "currentHintLevel": min(attempts + 1, 3),
        }


class TestLoadSave(StateStoreTestCase):
    def test_missing_day_loads_as_none(self):
        self.assertIsNone(self.store.load("2026-10-17"))
        self.assertEqual(self.kv.keys(), [])

    def test_save_normalizes_before_writing(self):
        self.store.save("2026-10-17", {"attempts": 0, "attemptLog": [{"id": "g", "kind": "guess", "correct": True, "timestamp": 1}]})

        stored = json.loads(self.kv.get("frameguessr-2026-10-17"))
        self.assertEqual(stored["date"], "2026-10-17")
        self.assertEqual(stored["attempts"], 1)
        self.assertTrue(stored["won"])
        self.assertTrue(stored["completed"])
        self.assertEqual(stored["maxAttempts"], 3)

    def test_load_upgrades_legacy_blob(self):
        self.kv.set("frameguessr-2026-10-10", json.dumps(LEGACY_BLOB))

        state = self.store.load(date(2026, 10, 10))

        self.assertEqual(len(state.attempt_log), 1)
        self.assertEqual(state.attempt_log[0].subject_id, 5)
        self.assertEqual(state.attempts, 1)
        self.assertEqual(state.current_hint_level, 2)
        self.assertFalse(state.completed)

    def test_load_uses_key_date(self):
        self.kv.set("frameguessr-2026-10-11", json.dumps(self.played("2020-01-01")))
        self.assertEqual(self.store.load("2026-10-11").date, "2026-10-11")

    def test_roundtrip_is_stable(self):
        self.store.save("2026-10-17", self.played("2026-10-17", attempts=2))
        first = self.store.load("2026-10-17")
        self.store.save("2026-10-17", first)
        self.assertEqual(self.store.load("2026-10-17"), first)

    def test_corrupted_blob_is_missing_state(self):
        self.kv.set("frameguessr-2026-10-17", "{not json")
        with self.assertLogs("repository.game_state_repo", level="ERROR"):
            self.assertIsNone(self.store.load("2026-10-17"))

    def test_non_object_blob_is_missing_state(self):
        self.kv.set("frameguessr-2026-10-17", "[1, 2, 3]")
        with self.assertLogs("repository.game_state_repo", level="WARNING"):
            self.assertIsNone(self.store.load("2026-10-17"))

    def test_save_failure_is_swallowed(self):
        error = OperationalError("INSERT", {}, Exception("quota exceeded"))
        with patch.object(self.kv, "set", side_effect=error):
            with self.assertLogs("repository.game_state_repo", level="ERROR"):
                self.store.save("2026-10-17", self.played("2026-10-17"))
        self.assertIsNone(self.store.load("2026-10-17"))

    def test_load_failure_is_missing_state(self):
        error = OperationalError("SELECT", {}, Exception("db down"))
        with patch.object(self.kv, "get", side_effect=error):
            with self.assertLogs("repository.game_state_repo", level="ERROR"):
                self.assertIsNone(self.store.load("2026-10-17"))

    def test_absent_state_is_not_written(self):
        with self.assertLogs("repository.game_state_repo", level="WARNING"):
            self.store.save("2026-10-17", None)
        self.assertEqual(self.kv.keys(), [])

    def test_namespaces_are_isolated(self):
        other = StateStore(SqlKeyValueStore(self.db, "user-42"))
        self.store.save("2026-10-17", self.played("2026-10-17"))
        self.assertIsNone(other.load("2026-10-17"))
        self.assertIsNotNone(self.store.load("2026-10-17"))

    def test_last_write_wins(self):
        self.store.save("2026-10-17", self.played("2026-10-17", attempts=1))
        self.store.save("2026-10-17", self.played("2026-10-17", attempts=2))
        self.assertEqual(self.store.load("2026-10-17").attempts, 2)
        self.assertEqual(len(self.kv.keys()), 1)


class TestResetAndSettings(StateStoreTestCase):
    def test_reset_forgets_the_day(self):
        self.store.save("2026-10-17", self.played("2026-10-17", attempts=2))
        self.store.save("2026-10-16", self.played("2026-10-16"))

        self.assertTrue(self.store.reset("2026-10-17"))

        self.assertIsNone(self.store.load("2026-10-17"))
        self.assertEqual(self.store.list_dates(), ["2026-10-16"])
        self.assertFalse(self.store.reset("2026-10-17"))

    def test_reset_failure_is_swallowed(self):
        error = OperationalError("DELETE", {}, Exception("db down"))
        with patch.object(self.kv, "delete", side_effect=error):
            with self.assertLogs("repository.game_state_repo", level="ERROR"):
                self.assertFalse(self.store.reset("2026-10-17"))

    def test_settings_roundtrip(self):
        self.assertEqual(self.store.load_settings(), UserSettings())

        self.store.save_settings(UserSettings(dark_mode=True))

        self.assertEqual(json.loads(self.kv.get("frameguessr-settings")), {"darkMode": True})
        self.assertTrue(self.store.load_settings().dark_mode)
        self.assertIsNone(self.store.load_settings().high_contrast)

    def test_settings_survive_cleanup(self):
        self.store.save_settings(UserSettings(reduced_motion=True))
        self.store.cleanup_old_games(date(2026, 10, 17))
        self.assertTrue(self.store.load_settings().reduced_motion)


class TestRetentionSweep(StateStoreTestCase):
    def test_cleanup_old_games(self):
        for day in ("2026-10-17", "2026-09-17", "2026-09-16", "2025-01-01"):
            self.store.save(day, self.played(day))
        self.kv.set("frameguessr-stats", json.dumps({"gamesPlayed": 1}))
        self.kv.set("frameguessr-sync-decision", json.dumps({"type": "import-all"}))
        self.kv.set("frameguessr-not-a-date", "{}")

        deleted = self.store.cleanup_old_games(date(2026, 10, 17))

        self.assertEqual(deleted, 2)
        self.assertEqual(self.store.list_dates(), ["2026-09-17", "2026-10-17"])
        self.assertIsNotNone(self.kv.get("frameguessr-stats"))
        self.assertIsNotNone(self.kv.get("frameguessr-sync-decision"))
        self.assertIsNotNone(self.kv.get("frameguessr-not-a-date"))

    def test_cleanup_nothing_to_delete(self):
        self.store.save("2026-10-17", self.played("2026-10-17"))
        self.assertEqual(self.store.cleanup_old_games(date(2026, 10, 17)), 0)


class TestSummaryAndStats(StateStoreTestCase):
    def test_list_dates_and_summary(self):
        self.store.save("2026-10-15", self.played("2026-10-15", attempts=3))
        self.store.save("2026-10-16", self.played("2026-10-16", attempts=1))
        self.store.save("2026-10-17", self.played("2026-10-17", attempts=0))

        self.assertEqual(self.store.list_dates(), ["2026-10-15", "2026-10-16", "2026-10-17"])
        summary = self.store.get_data_summary()
        self.assertEqual((summary.games, summary.completed, summary.in_progress), (2, 1, 1))

    def test_stats_streaks(self):
        self.assertEqual(self.store.load_stats().games_played, 0)

        self.store.update_stats(True, "2026-10-15")
        stats = self.store.update_stats(True, date(2026, 10, 16))
        self.assertEqual((stats.games_played, stats.games_won, stats.current_streak, stats.max_streak), (2, 2, 2, 2))

        # mismo día: no se cuenta dos veces
        stats = self.store.update_stats(True, "2026-10-16")
        self.assertEqual(stats.games_played, 2)

        stats = self.store.update_stats(False, "2026-10-17")
        self.assertEqual((stats.games_played, stats.current_streak, stats.max_streak), (3, 0, 2))

        stats = self.store.update_stats(True, "2026-10-19")
        self.assertEqual(stats.current_streak, 1)
        self.assertEqual(self.store.load_stats(), stats)

    def test_export_import(self):
        self.store.save("2026-10-17", self.played("2026-10-17"))
        self.store.update_stats(False, "2026-10-17")
        exported = self.store.export_data()
        self.assertEqual(set(exported), {"frameguessr-2026-10-17", "frameguessr-stats"})

        other = StateStore(SqlKeyValueStore(self.db, "user-7"))
        self.assertTrue(other.import_data(exported))
        self.assertEqual(other.load("2026-10-17"), self.store.load("2026-10-17"))
        self.assertEqual(other.load_stats().games_played, 1)

    def test_import_normalizes_day_entries(self):
        other = StateStore(SqlKeyValueStore(self.db, "user-8"))
        self.assertTrue(other.import_data({"frameguessr-2026-10-10": LEGACY_BLOB, "unrelated": 1}))
        stored = json.loads(other.store.get("frameguessr-2026-10-10"))
        self.assertIn("attemptLog", stored)
        self.assertNotIn("guesses", stored)
        self.assertIsNone(other.store.get("unrelated"))

    def test_import_keeps_stored_win(self):
        won = self.played("2024-01-01", attempts=1)
        won["attemptLog"] = [{"id": "g1", "kind": "guess", "correct": True, "title": "Heat",
                              "subjectId": 949, "mediaKind": "movie", "timestamp": 1}]
        won.update(completed=True, won=True, currentHintLevel=1)
        self.store.save("2024-01-01", won)

        blank = self.played("2024-01-01", attempts=0)
        self.assertTrue(self.store.import_data({"frameguessr-2024-01-01": blank}))

        state = self.store.load("2024-01-01")
        self.assertTrue(state.won)
        self.assertTrue(state.completed)
        self.assertEqual(state.attempts, 1)

    def test_import_brings_more_progress(self):
        self.store.save("2026-10-16", self.played("2026-10-16", attempts=1))
        self.assertTrue(self.store.import_data({"frameguessr-2026-10-16": self.played("2026-10-16", attempts=2)}))
        self.assertEqual(self.store.load("2026-10-16").attempts, 2)

    def test_import_rejects_non_object(self):
        with self.assertLogs("repository.game_state_repo", level="ERROR"):
            self.assertFalse(self.store.import_data(["nope"]))


if __name__ == "__main__":
    unittest.main()
