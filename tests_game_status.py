import unittest

from utils.game_state_validation import create_default_game_state, state_after_guess, state_after_skip
from utils.game_status import (
    can_resume_game,
    get_game_progress,
    get_game_status_info,
    get_resumption_message,
    should_import_game_data,
)

DAY = "2026-10-17"


def fresh():
    return create_default_game_state(DAY)


def skipped(times):
    state = fresh()
    for ts in range(times):
        state = state_after_skip(state, timestamp=ts)
    return state


def won_on_first():
    return state_after_guess(fresh(), title="Heat", subject_id=949, media_kind="movie", correct=True, timestamp=1)


class TestGameStatusInfo(unittest.TestCase):
    def test_unplayed(self):
        for state in (None, fresh()):
            info = get_game_status_info(state)
            self.assertEqual((info.status, info.completion, info.attempts), ("unplayed", "incomplete", 0))
            self.assertFalse(info.can_resume)
            self.assertEqual(info.display_text, "Not started")

    def test_partial(self):
        info = get_game_status_info(skipped(1))
        self.assertEqual(info.status, "partial")
        self.assertTrue(info.can_resume)
        self.assertEqual(info.display_text, "1 attempt")
        self.assertEqual(get_game_status_info(skipped(2)).display_text, "2 attempts")

    def test_won_and_lost(self):
        won = get_game_status_info(won_on_first())
        self.assertEqual((won.status, won.completion, won.display_text), ("completed", "won", "Won in 1"))
        lost = get_game_status_info(skipped(3))
        self.assertEqual((lost.status, lost.completion, lost.display_text), ("completed", "lost", "Lost"))

    def test_repairs_before_reporting(self):
        # attempts=0 declarado pero con un intento en el log
        raw = {"date": DAY, "attempts": 0, "attemptLog": [{"id": "s", "kind": "skip", "timestamp": 1}]}
        self.assertEqual(get_game_status_info(raw).status, "partial")


class TestResumeAndProgress(unittest.TestCase):
    def test_can_resume(self):
        self.assertFalse(can_resume_game(None))
        self.assertFalse(can_resume_game(fresh()))
        self.assertTrue(can_resume_game(skipped(1)))
        self.assertFalse(can_resume_game(won_on_first()))

    def test_resumption_message(self):
        self.assertEqual(get_resumption_message(fresh()), "")
        self.assertEqual(get_resumption_message(skipped(1)), "Continue from scene 2. 2 attempts remaining.")
        self.assertEqual(get_resumption_message(skipped(2)), "Continue from scene 3. 1 attempt remaining.")

    def test_progress(self):
        self.assertEqual(get_game_progress(None), 0)
        self.assertEqual(get_game_progress(fresh()), 0)
        self.assertAlmostEqual(get_game_progress(skipped(1)), 30 + 40 / 3)
        self.assertAlmostEqual(get_game_progress(skipped(2)), min(60 + 80 / 3, 95))
        self.assertEqual(get_game_progress(won_on_first()), 100)


class TestShouldImport(unittest.TestCase):
    def test_no_account_data(self):
        self.assertTrue(should_import_game_data(skipped(1)))
        self.assertFalse(should_import_game_data(fresh()))

    def test_local_win_beats_account(self):
        self.assertTrue(should_import_game_data(won_on_first(), skipped(2)))
        self.assertFalse(should_import_game_data(skipped(1), won_on_first()))

    def test_more_local_progress(self):
        self.assertTrue(should_import_game_data(skipped(2), skipped(1)))
        self.assertFalse(should_import_game_data(skipped(1), skipped(2)))
        self.assertFalse(should_import_game_data(skipped(1), skipped(1)))


if __name__ == "__main__":
    unittest.main()
