import unittest

from schemas.game_state_schema import GameState
from utils import game_state_validation as gv


def make_state(**overrides):
    state = {
        "date": "2026-10-17",
        "attempts": 0,
        "maxAttempts": 3,
        "attemptLog": [],
        "completed": False,
        "won": False,
        "currentHintLevel": 1,
    }
    state.update(overrides)
    return state


def guess(attempt_id, correct=False, timestamp=1000, **extra):
    attempt = {
        "id": attempt_id,
        "kind": "guess",
        "correct": correct,
        "title": f"Title {attempt_id}",
        "subjectId": 100,
        "mediaKind": "movie",
        "timestamp": timestamp,
    }
    attempt.update(extra)
    return attempt


def skip(attempt_id, timestamp=1000):
    return {"id": attempt_id, "kind": "skip", "correct": False, "timestamp": timestamp}


MESSY_STATES = [
    {},
    make_state(attempts=5),
    make_state(attempts=-2, attemptLog=[guess("a")]),
    make_state(won=True, completed=True, currentHintLevel=7),
    make_state(attemptLog=[guess("a", correct=True)], currentHintLevel=None),
    make_state(attemptLog=[skip("s1"), skip("s2"), skip("s3"), skip("s4")], attempts=1),
    {
        "attempts": "three",
        "won": "yes",
        "attemptLog": [None, {"type": "skip", "correct": True}, {"id": 7, "kind": "guess", "correct": 1, "mediaType": "tv", "tmdbId": "x"}],
        "currentHintLevel": 9,
        "maxAttempts": 0,
    },
    {
        "currentDate": "2024-02-01",
        "attempts": 2,
        "guesses": [
            {"id": "g1", "title": "Alien", "tmdbId": 348, "mediaType": "movie", "correct": False, "timestamp": 5},
            {"id": "g2", "title": "Lost", "tmdbId": 4607, "mediaType": "tv", "correct": True, "timestamp": 9},
        ],
        "lastModified": 123,
        "syncStatus": "local-only",
    },
    make_state(attemptLog="not a list", guesses="nope", maxAttempts="3"),
]


class TestNormalizeAbsentInput(unittest.TestCase):
    def test_none_is_reported_as_missing(self):
        result = gv.normalize(None)
        self.assertFalse(result.is_valid)
        self.assertFalse(result.was_fixed)
        self.assertIsNone(result.validated_state)
        self.assertEqual(len(result.issues), 1)

    def test_non_object_is_treated_as_missing(self):
        result = gv.normalize(["not", "a", "state"])
        self.assertFalse(result.is_valid)
        self.assertFalse(result.was_fixed)
        self.assertIsNone(result.validated_state)
        self.assertIn("list", result.issues[0])


class TestNormalizeRepairs(unittest.TestCase):
    def test_valid_state_needs_no_repairs(self):
        state = make_state(attempts=1, attemptLog=[guess("a")], currentHintLevel=2)
        result = gv.normalize(state)
        self.assertTrue(result.is_valid)
        self.assertFalse(result.was_fixed)
        self.assertEqual(result.issues, [])
        self.assertEqual(result.validated_state.attempts, 1)

    def test_default_fill_max_attempts(self):
        result = gv.normalize({"attempts": 0, "attemptLog": [], "completed": False, "won": False, "currentHintLevel": 1})
        self.assertEqual(result.validated_state.max_attempts, 3)
        self.assertTrue(any("maxAttempts" in issue for issue in result.issues))

    def test_backfill_from_legacy_guesses(self):
        g1 = {"id": "g1", "title": "Heat", "tmdbId": 949, "mediaType": "movie", "correct": True, "timestamp": 10}
        g2 = {"id": "g2", "title": "Fargo", "tmdbId": 60622, "mediaType": "tv", "correct": False, "timestamp": 20}
        state = make_state(attemptLog=[], guesses=[g1, g2])
        state.pop("attemptLog")

        result = gv.normalize(state)
        validated = result.validated_state

        self.assertEqual(len(validated.attempt_log), 2)
        first, second = validated.attempt_log
        self.assertEqual((first.id, first.kind, first.correct, first.title, first.subject_id, first.media_kind, first.timestamp),
                         ("g1", "guess", True, "Heat", 949, "movie", 10))
        self.assertEqual((second.id, second.kind, second.correct, second.title, second.subject_id, second.media_kind, second.timestamp),
                         ("g2", "guess", False, "Fargo", 60622, "series", 20))
        self.assertEqual(validated.attempts, 2)
        self.assertTrue(validated.won)
        self.assertTrue(validated.completed)
        self.assertTrue(result.was_fixed)

    def test_backfill_also_runs_on_empty_attempt_log(self):
        state = make_state(attemptLog=[], guesses=[{"id": "g1", "title": "Up", "tmdbId": 1, "mediaType": "movie", "correct": False, "timestamp": 1}])
        result = gv.normalize(state)
        self.assertEqual(len(result.validated_state.attempt_log), 1)
        self.assertIn("Migrated 1 legacy guesses to attemptLog", result.issues)

    def test_single_legacy_guess_scenario(self):
        state = {
            "attempts": 1,
            "maxAttempts": 3,
            "guesses": [{"id": "a", "title": "X", "tmdbId": 5, "mediaType": "movie", "correct": False, "timestamp": 1000}],
            "completed": False,
            "won": False,
            "currentHintLevel": 1,
        }
        result = gv.normalize(state)
        validated = result.validated_state

        self.assertEqual(len(validated.attempt_log), 1)
        attempt = validated.attempt_log[0]
        self.assertEqual(attempt.kind, "guess")
        self.assertEqual(attempt.id, "a")
        self.assertEqual(attempt.subject_id, 5)
        self.assertEqual(validated.attempts, 1)
        self.assertFalse(validated.won)
        self.assertFalse(validated.completed)
        self.assertEqual(validated.current_hint_level, 2)
        self.assertTrue(result.issues)

    def test_attempt_log_wins_over_legacy_guesses(self):
        legacy = [{"id": "old", "title": "Old", "tmdbId": 1, "mediaType": "movie", "correct": True, "timestamp": 1}]
        state = make_state(attempts=1, attemptLog=[guess("new")], guesses=legacy, currentHintLevel=2)
        result = gv.normalize(state)

        self.assertEqual([a.id for a in result.validated_state.attempt_log], ["new"])
        self.assertFalse(result.validated_state.won)
        self.assertTrue(any("legacy guesses" in issue for issue in result.issues))
        self.assertNotIn("guesses", result.validated_state.model_dump(by_alias=True))

    def test_attempt_count_never_understates_log(self):
        state = make_state(attempts=0, attemptLog=[skip("s1"), guess("g1")])
        validated = gv.normalize(state).validated_state
        self.assertEqual(validated.attempts, 2)

    def test_declared_attempts_above_log_are_kept(self):
        state = make_state(attempts=2, attemptLog=[guess("g1")], currentHintLevel=3)
        result = gv.normalize(state)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.validated_state.attempts, 2)

    def test_win_flag_follows_correct_guess(self):
        state = make_state(attempts=1, attemptLog=[guess("g1", correct=True)], won=False, completed=False, currentHintLevel=1)
        validated = gv.normalize(state).validated_state
        self.assertTrue(validated.won)
        self.assertTrue(validated.completed)
        # partida terminada: conserva el nivel de pista que vio el jugador
        self.assertEqual(validated.current_hint_level, 1)

    def test_correct_skip_does_not_win(self):
        state = make_state(attempts=1, attemptLog=[{"id": "s1", "kind": "skip", "correct": True, "timestamp": 1}])
        result = gv.normalize(state)
        self.assertFalse(result.validated_state.won)
        self.assertIn("Cleared correct flag on skip attempt 0", result.issues)

    def test_non_boolean_correct_on_skip_is_reported(self):
        for flag in ("yes", 1, None):
            with self.subTest(flag=flag):
                entry = {"id": "s1", "kind": "skip", "correct": flag, "timestamp": 1}
                result = gv.normalize(make_state(attempts=1, attemptLog=[entry], currentHintLevel=2))
                self.assertFalse(result.validated_state.attempt_log[0].correct)
                if flag is None:
                    self.assertTrue(result.is_valid, result.issues)
                else:
                    self.assertIn("Cleared correct flag on skip attempt 0", result.issues)

    def test_completion_uses_repaired_attempts(self):
        state = make_state(attempts=1, attemptLog=[skip("s1"), skip("s2"), skip("s3")], currentHintLevel=3)
        validated = gv.normalize(state).validated_state
        self.assertEqual(validated.attempts, 3)
        self.assertTrue(validated.completed)
        self.assertFalse(validated.won)

    def test_in_progress_hint_level_is_forced(self):
        state = make_state(attempts=1, attemptLog=[skip("s1")], currentHintLevel=3)
        validated = gv.normalize(state).validated_state
        self.assertEqual(validated.current_hint_level, 2)

    def test_completed_game_keeps_hint_level(self):
        state = make_state(attempts=3, attemptLog=[skip("s1"), skip("s2"), guess("g3", correct=True)],
                           completed=True, won=True, currentHintLevel=2)
        result = gv.normalize(state)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.validated_state.current_hint_level, 2)

    def test_completed_game_with_missing_hint_level_derives_it(self):
        state = make_state(attempts=1, attemptLog=[guess("g1", correct=True)], completed=True, won=True)
        state.pop("currentHintLevel")
        validated = gv.normalize(state).validated_state
        self.assertEqual(validated.current_hint_level, 2)

    def test_completed_game_with_out_of_range_hint_is_rederived(self):
        state = make_state(attempts=3, attemptLog=[skip("a"), skip("b"), skip("c")],
                           completed=True, currentHintLevel=7)
        validated = gv.normalize(state).validated_state
        self.assertEqual(validated.current_hint_level, 3)

    def test_date_hint_overrides_stored_date(self):
        result = gv.normalize(make_state(date="2026-01-01"), date_hint="2026-10-17")
        self.assertEqual(result.validated_state.date, "2026-10-17")
        self.assertIn("Fixed date: 2026-01-01 → 2026-10-17", result.issues)

    def test_legacy_current_date_is_accepted(self):
        state = make_state()
        state["currentDate"] = state.pop("date")
        result = gv.normalize(state)
        self.assertEqual(result.validated_state.date, "2026-10-17")
        self.assertFalse(result.is_valid)
        self.assertIn("Upgraded legacy field names in game state: currentDate → date", result.issues)

    def test_legacy_spellings_are_reported(self):
        state = {
            "currentDate": "2026-10-17",
            "attempts": 1,
            "maxAttempts": 3,
            "allAttempts": [{"id": "g1", "type": "guess", "correct": False, "title": "X",
                             "tmdbId": 5, "mediaType": "movie", "timestamp": 1}],
            "completed": False,
            "won": False,
            "currentHintLevel": 2,
            "lastModified": 99,
        }
        result = gv.normalize(state)

        self.assertFalse(result.is_valid)
        self.assertTrue(result.was_fixed)
        self.assertIn("Upgraded legacy field names in game state: currentDate → date, allAttempts → attemptLog", result.issues)
        self.assertIn("Dropped unknown fields in game state: lastModified", result.issues)
        self.assertIn("Upgraded legacy field names in attempt 0: type → kind, tmdbId → subjectId, mediaType → mediaKind",
                      result.issues)
        dumped = result.validated_state.model_dump(by_alias=True)
        self.assertEqual(dumped["attemptLog"][0]["subjectId"], 5)
        self.assertFalse(gv.normalize(dumped).issues)

    def test_empty_legacy_guesses_field_is_reported(self):
        result = gv.normalize(make_state(guesses=[]))
        self.assertIn("Dropped empty legacy guesses field", result.issues)

    def test_unknown_attempt_fields_are_reported(self):
        state = make_state(attempts=1, attemptLog=[guess("g1", score=10)], currentHintLevel=2)
        result = gv.normalize(state)
        self.assertEqual(result.issues, ["Dropped unknown fields in attempt 0: score"])

    def test_attempt_entries_are_repaired(self):
        state = make_state(attempts=3, attemptLog=[
            None,
            {"kind": "guess", "correct": "yes", "mediaType": "tv", "tmdbId": 12, "timestamp": 50},
            {"id": "x", "kind": "bogus", "correct": False},
            {"id": "s", "type": "skip", "title": "leftover", "timestamp": 70},
        ], currentHintLevel=3, completed=True)
        result = gv.normalize(state)
        log = result.validated_state.attempt_log

        self.assertEqual(len(log), 3)
        self.assertEqual(log[0].id, "attempt-1")
        self.assertFalse(log[0].correct)
        self.assertEqual(log[0].media_kind, "series")
        self.assertEqual(log[0].subject_id, 12)
        self.assertEqual(log[1].kind, "guess")
        self.assertEqual(log[1].timestamp, 50)
        self.assertEqual(log[2].kind, "skip")
        self.assertIsNone(log[2].title)
        self.assertIn("Dropped malformed attempt 0", result.issues)

    def test_accepts_game_state_model(self):
        model = GameState(date="2026-10-17", attempts=1, attempt_log=[guess("g1")], current_hint_level=2)
        result = gv.normalize(model)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.validated_state, model)

    def test_input_is_not_mutated(self):
        state = make_state(attempts=5)
        gv.normalize(state)
        self.assertEqual(state["attempts"], 5)
        self.assertFalse(state["completed"])


class TestNormalizeProperties(unittest.TestCase):
    def test_idempotence(self):
        for state in MESSY_STATES:
            with self.subTest(state=state):
                first = gv.normalize(state)
                second = gv.normalize(first.validated_state.model_dump(by_alias=True))
                self.assertFalse(second.was_fixed, second.issues)
                self.assertEqual(second.validated_state, first.validated_state)

    def test_invariants_hold_after_normalization(self):
        for state in MESSY_STATES:
            with self.subTest(state=state):
                validated = gv.normalize(state).validated_state
                raw_log = state.get("attemptLog")
                self.assertGreaterEqual(validated.attempts, len(raw_log) if isinstance(raw_log, list) else 0)
                self.assertGreaterEqual(validated.attempts, len(validated.attempt_log))
                self.assertEqual(validated.won, any(a.kind == "guess" and a.correct for a in validated.attempt_log))
                self.assertEqual(validated.completed, validated.won or validated.attempts >= validated.max_attempts)
                self.assertGreaterEqual(validated.current_hint_level, 1)
                self.assertLessEqual(validated.current_hint_level, 3)
                self.assertGreaterEqual(validated.max_attempts, 1)

    def test_is_valid_and_normalized_only(self):
        valid = make_state()
        self.assertTrue(gv.is_valid(valid))
        self.assertFalse(gv.is_valid(make_state(won=True)))
        self.assertFalse(gv.is_valid(None))
        self.assertEqual(gv.normalized_only(make_state(attempts=4)).attempts, 4)
        self.assertIsNone(gv.normalized_only(None))


class TestStatesEquivalent(unittest.TestCase):
    def test_equivalent_under_timestamp_jitter(self):
        a = make_state(attempts=2, attemptLog=[skip("s1", 1000), guess("g1", timestamp=2000)], currentHintLevel=3)
        b = make_state(attempts=2, attemptLog=[skip("s1", 1003), guess("g1", timestamp=2050)], currentHintLevel=3)
        self.assertTrue(gv.states_equivalent(a, b))

    def test_equivalent_despite_key_order_and_legacy_shape(self):
        legacy = {
            "currentHintLevel": 2,
            "guesses": [{"id": "g1", "title": "X", "tmdbId": 5, "mediaType": "movie", "correct": False, "timestamp": 1}],
            "attempts": 1,
            "date": "2026-10-17",
        }
        modern = make_state(attempts=1, attemptLog=[guess("g1", timestamp=1)], currentHintLevel=2)
        self.assertTrue(gv.states_equivalent(legacy, modern))

    def test_different_progress_is_not_equivalent(self):
        a = make_state(attempts=1, attemptLog=[guess("g1")], currentHintLevel=2)
        b = make_state(attempts=2, attemptLog=[guess("g1"), skip("s2")], currentHintLevel=3)
        self.assertFalse(gv.states_equivalent(a, b))

    def test_absent_states(self):
        self.assertTrue(gv.states_equivalent(None, None))
        self.assertFalse(gv.states_equivalent(None, make_state()))


class TestGameStatusHelpers(unittest.TestCase):
    def test_get_game_status(self):
        self.assertEqual(gv.get_game_status(None), "unplayed")
        self.assertEqual(gv.get_game_status(make_state()), "unplayed")
        self.assertEqual(gv.get_game_status(make_state(attempts=1, attemptLog=[guess("g1")])), "in-progress")
        self.assertEqual(gv.get_game_status(make_state(attemptLog=[guess("g1", correct=True)])), "completed-won")
        self.assertEqual(gv.get_game_status(make_state(attempts=3)), "completed-lost")

    def test_progress_flags(self):
        fresh = make_state()
        played = make_state(attempts=1, attemptLog=[skip("s1")], currentHintLevel=2)
        self.assertFalse(gv.has_progress(fresh))
        self.assertFalse(gv.is_worth_saving(None))
        self.assertTrue(gv.is_worth_saving(played))
        self.assertFalse(gv.is_game_completed(played))
        self.assertTrue(gv.is_game_won(make_state(attemptLog=[guess("g1", correct=True)])))

    def test_has_meaningful_progress(self):
        self.assertFalse(gv.has_meaningful_progress(make_state()))
        self.assertTrue(gv.has_meaningful_progress(make_state(attempts=1, attemptLog=[skip("s1")])))
        self.assertTrue(gv.has_meaningful_progress(make_state(attempts=1, attemptLog=[guess("g1")])))

    def test_create_default_game_state(self):
        state = gv.create_default_game_state("2026-10-17")
        self.assertTrue(gv.is_valid(state))
        self.assertEqual(state.max_attempts, 3)
        self.assertEqual(state.current_hint_level, 1)


class TestPlayerMutations(unittest.TestCase):
    def setUp(self):
        self.fresh = gv.create_default_game_state("2026-10-17")

    def test_wrong_guess_advances_hint(self):
        state = gv.state_after_guess(self.fresh, title="Heat", subject_id=949, media_kind="movie", correct=False, timestamp=100)
        self.assertEqual(state.attempts, 1)
        self.assertEqual(state.current_hint_level, 2)
        self.assertFalse(state.completed)
        self.assertEqual(state.attempt_log[0].title, "Heat")

    def test_correct_guess_wins_and_keeps_hint_level(self):
        state = gv.state_after_skip(self.fresh, timestamp=100)
        state = gv.state_after_guess(state, title="Heat", subject_id=949, media_kind="movie", correct=True, timestamp=200)
        self.assertTrue(state.won)
        self.assertTrue(state.completed)
        self.assertEqual(state.attempts, 2)
        self.assertEqual(state.current_hint_level, 2)

    def test_three_misses_complete_the_game(self):
        state = self.fresh
        for ts in (1, 2, 3):
            state = gv.state_after_skip(state, timestamp=ts)
        self.assertTrue(state.completed)
        self.assertFalse(state.won)
        self.assertEqual(state.current_hint_level, 3)

    def test_finished_game_is_left_untouched(self):
        state = gv.state_after_guess(self.fresh, title="Heat", subject_id=949, media_kind="movie", correct=True, timestamp=1)
        again = gv.state_after_skip(state, timestamp=2)
        self.assertEqual(again, state)

    def test_timestamps_never_go_backwards(self):
        state = gv.state_after_skip(self.fresh, timestamp=500)
        state = gv.state_after_skip(state, timestamp=100)
        self.assertEqual([a.timestamp for a in state.attempt_log], [500, 500])

    def test_legacy_media_kind_is_upgraded(self):
        state = gv.state_after_guess(self.fresh, title="Lost", subject_id=4607, media_kind="tv", correct=False, timestamp=1)
        self.assertEqual(state.attempt_log[0].media_kind, "series")


class TestMergeGameStates(unittest.TestCase):
    def test_absent_sides(self):
        local = make_state(attempts=1, attemptLog=[skip("s1")], currentHintLevel=2)
        self.assertEqual(gv.merge_game_states(local, None).attempts, 1)
        self.assertEqual(gv.merge_game_states(None, local).attempts, 1)
        self.assertIsNone(gv.merge_game_states(None, None))

    def test_winner_is_preferred(self):
        won = make_state(attempts=1, attemptLog=[guess("g1", correct=True)], completed=True, won=True)
        more = make_state(attempts=2, attemptLog=[skip("s1"), skip("s2")], currentHintLevel=3)
        self.assertTrue(gv.merge_game_states(more, won).won)
        self.assertTrue(gv.merge_game_states(won, more).won)

    def test_more_attempts_then_hint_then_cloud(self):
        one = make_state(attempts=1, attemptLog=[skip("s1")], currentHintLevel=2)
        two = make_state(attempts=2, attemptLog=[skip("s1"), skip("s2")], currentHintLevel=3)
        self.assertEqual(gv.merge_game_states(one, two).attempts, 2)
        self.assertEqual(gv.merge_game_states(two, one).attempts, 2)

        local = make_state(date="2026-10-17", attempts=1, attemptLog=[skip("local")], currentHintLevel=2)
        cloud = make_state(date="2026-10-17", attempts=1, attemptLog=[skip("cloud")], currentHintLevel=2)
        self.assertEqual(gv.merge_game_states(local, cloud).attempt_log[0].id, "cloud")


if __name__ == "__main__":
    unittest.main()
