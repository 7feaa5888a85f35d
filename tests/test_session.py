"""Tests for GameSessionManager."""

import sys
import tempfile
import threading
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock

# Add src to path so we can import tubeguessr
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tubeguessr.catalog import StationCatalog
from tubeguessr.clock import ManualClock
from tubeguessr.config import GameConfig
from tubeguessr.models import GameRound, Line, Station
from tubeguessr.session import GameSessionManager, GameState, GuessOutcome
from tubeguessr.store import GameStore, MemoryBackend
from tubeguessr.ticker import ElapsedTimeTicker

CENTRAL = Line(line_id="central", name="Central", color_code="#DC241F")
NORTHERN = Line(line_id="northern", name="Northern", color_code="#000000")
WATERLOO_CITY = Line(line_id="waterloo-city", name="Waterloo & City", color_code="#76D0BD")
NATIONAL_RAIL = Line(line_id="national-rail", name="National Rail", color_code="#000080")

WRONG_GUESSES = ["Monument", "Moorgate", "Aldgate", "Temple", "Blackfriars"]


def make_catalog() -> StationCatalog:
    """Bank is the only multi-line station, so it is always selected."""
    catalog = StationCatalog()
    catalog.add_station(
        Station(
            name="Bank",
            lines=(CENTRAL, NORTHERN, WATERLOO_CITY),
            trivia="this forms a complex with Monument station.",
            location="Central London",
        )
    )
    catalog.add_station(
        Station(name="Clapham Junction", lines=(NATIONAL_RAIL,), trivia="busy.", location="South London")
    )
    return catalog


class SessionTestCase(unittest.TestCase):
    """Shared fixtures: manual clock, in-memory store, mocked collaborators."""

    def setUp(self):
        self.clock = ManualClock(datetime(2024, 3, 1, 9, 0, 0))
        self.backend = MemoryBackend()
        self.store = GameStore(self.backend, clock=self.clock)
        self.catalog = make_catalog()
        self.unlimited = False
        self.badge_clearer = MagicMock()
        self.manager = self.make_manager()

    def make_manager(self) -> GameSessionManager:
        return GameSessionManager(
            self.store,
            self.catalog,
            clock=self.clock,
            access_provider=lambda: self.unlimited,
            badge_clearer=self.badge_clearer,
        )

    def restart(self) -> GameSessionManager:
        """Simulate a process restart over the same persisted data."""
        self.store = GameStore(self.backend, clock=self.clock)
        self.manager = self.make_manager()
        return self.manager


class TestStartGame(SessionTestCase):
    """Test the Waiting -> Playing transition."""

    def test_initial_state_waiting(self):
        self.assertEqual(self.manager.state, GameState.WAITING)
        self.assertIsNone(self.manager.current_game)

    def test_start_new_game(self):
        self.assertTrue(self.manager.start_new_game())

        game = self.manager.current_game
        self.assertEqual(self.manager.state, GameState.PLAYING)
        self.assertEqual(game.station.name, "Bank")
        self.assertEqual(game.date, self.clock.now())
        self.assertEqual(game.remaining_guesses, 5)
        self.assertIs(self.store.current_game, game)
        self.badge_clearer.assert_called_once()

    def test_badge_failure_ignored(self):
        self.badge_clearer.side_effect = RuntimeError("no permission")
        self.assertTrue(self.manager.start_new_game())
        self.assertEqual(self.manager.state, GameState.PLAYING)

    def test_start_while_playing_refused(self):
        self.manager.start_new_game()
        game = self.manager.current_game
        self.assertFalse(self.manager.start_new_game())
        self.assertIs(self.manager.current_game, game)

    def test_no_multi_line_station_refused(self):
        catalog = StationCatalog()
        catalog.add_station(
            Station(name="Clapham Junction", lines=(NATIONAL_RAIL,), trivia="busy.", location="South London")
        )
        self.manager.catalog = catalog

        self.assertFalse(self.manager.start_new_game())
        self.assertEqual(self.manager.state, GameState.WAITING)
        self.assertIsNone(self.manager.current_game)
        self.assertIsNone(self.store.current_game)
        self.badge_clearer.assert_not_called()


class TestGuessing(SessionTestCase):
    """Test guess handling and round completion."""

    def setUp(self):
        super().setUp()
        self.manager.start_new_game()

    def test_correct_guess_wins(self):
        self.clock.advance(seconds=42)
        self.assertEqual(self.manager.make_guess("Bank"), GuessOutcome.CORRECT)

        game = self.manager.current_game
        self.assertEqual(self.manager.state, GameState.COMPLETED)
        self.assertTrue(game.is_completed)
        self.assertTrue(game.is_win)
        self.assertEqual(game.guesses, ["Bank"])
        self.assertEqual(game.completion_time, 42.0)
        self.assertIsNone(self.store.current_game)
        self.assertEqual(self.store.stats.history, [game])
        self.assertEqual(self.store.stats.current_streak, 1)
        self.assertEqual(self.store.stats.recent_station_ids, ["bank"])

    def test_fuzzy_guess_wins(self):
        self.assertEqual(self.manager.make_guess("banks"), GuessOutcome.CORRECT)
        self.assertTrue(self.manager.current_game.is_win)

    def test_surrounding_whitespace_trimmed(self):
        self.assertEqual(self.manager.make_guess("Monument\t"), GuessOutcome.INCORRECT)
        self.assertEqual(self.manager.make_guess("\tBank\n"), GuessOutcome.CORRECT)
        self.assertEqual(self.manager.current_game.guesses, ["Monument", "Bank"])
        self.assertEqual(self.store.stats.history[-1].guesses, ["Monument", "Bank"])

    def test_trailing_newline_guess_wins(self):
        self.assertEqual(self.manager.make_guess("Bank\r\n"), GuessOutcome.CORRECT)
        self.assertEqual(self.manager.current_game.guesses, ["Bank"])

    def test_incorrect_guess_keeps_playing(self):
        self.assertEqual(self.manager.make_guess("Monument"), GuessOutcome.INCORRECT)
        self.assertEqual(self.manager.state, GameState.PLAYING)
        self.assertEqual(self.store.current_game.guesses, ["Monument"])
        self.assertEqual(self.manager.current_game.remaining_guesses, 4)

    def test_five_wrong_guesses_lose(self):
        # Streak carried over from earlier rounds
        self.store.stats.current_streak = 3
        self.store.stats.max_streak = 3

        for guess in WRONG_GUESSES:
            self.assertEqual(self.manager.make_guess(guess), GuessOutcome.INCORRECT)
            game = self.manager.current_game
            self.assertEqual(game.remaining_guesses + len(game.guesses), 5)

        self.assertEqual(self.manager.state, GameState.COMPLETED)
        self.assertTrue(game.is_completed)
        self.assertFalse(game.is_win)
        self.assertEqual(len(self.store.stats.history), 1)
        self.assertEqual(self.store.stats.current_streak, 0)
        self.assertEqual(self.store.stats.max_streak, 3)
        self.assertEqual(self.manager.make_guess("Bank"), GuessOutcome.NOT_PLAYING)

    def test_empty_guess_not_counted(self):
        self.assertEqual(self.manager.make_guess("   "), GuessOutcome.INVALID)
        self.assertEqual(self.manager.make_guess(""), GuessOutcome.INVALID)
        self.assertEqual(self.manager.current_game.guesses, [])
        self.assertEqual(self.manager.current_game.remaining_guesses, 5)

    def test_guess_without_round(self):
        self.manager.reset()
        self.assertEqual(self.manager.make_guess("Bank"), GuessOutcome.NOT_PLAYING)


class TestQuota(SessionTestCase):
    """Test the daily play limit."""

    def finish_round(self):
        self.manager.start_new_game()
        self.manager.make_guess("Bank")

    def test_second_round_same_day_refused(self):
        self.finish_round()
        self.assertFalse(self.manager.start_new_game())
        self.assertEqual(self.manager.state, GameState.COMPLETED)
        self.assertEqual(len(self.store.stats.history), 1)

    def test_restart_same_day_shows_completed(self):
        self.finish_round()
        manager = self.restart()
        self.assertEqual(manager.state, GameState.COMPLETED)
        self.assertTrue(manager.current_game.is_win)
        self.assertFalse(manager.start_new_game())

    def test_already_played(self):
        self.store.save_last_played_date(self.clock.now())
        manager = self.restart()
        self.assertEqual(manager.state, GameState.ALREADY_PLAYED)
        self.assertFalse(manager.start_new_game())
        self.assertEqual(manager.state, GameState.ALREADY_PLAYED)

    def test_next_day_allowed(self):
        self.finish_round()
        self.clock.advance(days=1)
        self.assertEqual(self.manager.check_game_state(), GameState.WAITING)
        self.assertTrue(self.manager.start_new_game())
        self.assertEqual(self.manager.current_game.date.date(), self.clock.today())

    def test_unlimited_access_replays(self):
        self.finish_round()
        first = self.manager.current_game

        self.unlimited = True
        self.manager.refresh_access()
        self.assertTrue(self.manager.has_unlimited_access)
        self.assertTrue(self.manager.start_new_game())
        self.assertIsNot(self.manager.current_game, first)
        self.assertEqual(self.manager.state, GameState.PLAYING)

    def test_access_provider_failure_means_limited(self):
        def broken():
            raise RuntimeError("store unavailable")

        self.finish_round()
        self.manager._access_provider = broken
        self.assertFalse(self.manager.start_new_game())
        self.assertFalse(self.manager.has_unlimited_access)


class TestReconciliation(SessionTestCase):
    """Test state recovery at app entry."""

    def test_resume_in_progress_round(self):
        self.manager.start_new_game()
        self.manager.make_guess("Monument")
        self.clock.advance(seconds=30)
        self.manager.on_suspend()

        manager = self.restart()
        self.assertEqual(manager.state, GameState.PLAYING)
        self.assertEqual(manager.current_game.guesses, ["Monument"])
        self.assertEqual(manager.elapsed_time(), 30.0)

        self.clock.advance(seconds=5)
        self.assertEqual(manager.elapsed_time(), 35.0)

    def test_stale_round_discarded(self):
        self.manager.start_new_game()
        self.manager.make_guess("Monument")

        self.clock.advance(days=1)
        manager = self.restart()
        self.assertEqual(manager.state, GameState.WAITING)
        self.assertIsNone(manager.current_game)
        self.assertIsNone(self.store.current_game)
        self.assertIsNone(self.backend.read("currentGame"))

    def test_persisted_completed_round(self):
        game = GameRound(station=self.catalog.get_station("bank"), date=self.clock.now())
        game.guesses.append("Bank")
        game.is_completed = True
        game.is_win = True
        self.store.save_current_game(game)

        manager = self.restart()
        self.assertEqual(manager.state, GameState.COMPLETED)
        self.assertEqual(manager.current_game.round_id, game.round_id)


class TestHints(SessionTestCase):
    """Test the one-shot hint flags."""

    def setUp(self):
        super().setUp()
        self.manager.start_new_game()

    def test_eligibility(self):
        self.assertFalse(self.manager.can_use_location_hint)
        self.assertFalse(self.manager.can_use_hint)

        self.manager.make_guess("Monument")
        self.assertTrue(self.manager.can_use_location_hint)
        self.assertFalse(self.manager.can_use_hint)

        self.manager.make_guess("Moorgate")
        self.manager.make_guess("Aldgate")
        self.assertTrue(self.manager.can_use_hint)

    def test_hints_used_once_and_persisted(self):
        self.assertTrue(self.manager.use_location_hint())
        self.assertFalse(self.manager.use_location_hint())
        self.assertTrue(self.manager.use_hint())
        self.assertFalse(self.manager.use_hint())

        self.assertTrue(self.store.current_game.location_hint_used)
        self.assertTrue(self.store.current_game.hints_used)
        self.assertFalse(self.manager.can_use_location_hint)
        self.assertFalse(self.manager.can_use_hint)

        manager = self.restart()
        self.assertTrue(manager.current_game.hints_used)

    def test_hints_counted_on_completion(self):
        self.manager.use_location_hint()
        self.manager.make_guess("Bank")
        self.assertEqual(self.store.stats.total_hints_used, 1)
        self.assertFalse(self.manager.use_hint())


class TestElapsedTime(SessionTestCase):
    """Test time accounting across suspend and resume."""

    def test_suspend_resume_cycle(self):
        self.manager.start_new_game()
        self.clock.advance(seconds=10)
        self.assertEqual(self.manager.elapsed_time(), 10.0)

        self.manager.on_suspend()
        self.assertEqual(self.store.current_game.accumulated_elapsed_time, 10.0)
        self.clock.advance(seconds=600)
        self.assertEqual(self.manager.elapsed_time(), 10.0)

        self.manager.on_resume()
        self.clock.advance(seconds=5)
        self.assertEqual(self.manager.elapsed_time(), 15.0)

    def test_handlers_idempotent(self):
        self.manager.on_suspend()
        self.manager.on_resume()
        self.assertEqual(self.manager.elapsed_time(), 0.0)

        self.manager.start_new_game()
        self.clock.advance(seconds=4)
        self.manager.on_resume()
        self.manager.on_resume()
        self.clock.advance(seconds=4)
        self.manager.on_suspend()
        self.manager.on_suspend()
        self.assertEqual(self.manager.elapsed_time(), 8.0)

    def test_monotonic_and_non_negative(self):
        self.manager.start_new_game()
        previous = self.manager.elapsed_time()
        for step in range(20):
            self.clock.advance(seconds=step % 7)
            if step % 3 == 0:
                self.manager.on_suspend()
            elif step % 3 == 1:
                self.manager.on_resume()
            current = self.manager.elapsed_time()
            self.assertGreaterEqual(current, 0.0)
            self.assertGreaterEqual(current, previous)
            previous = current

    def test_clock_going_backwards(self):
        self.manager.start_new_game()
        self.clock.advance(seconds=-30)
        self.assertEqual(self.manager.elapsed_time(), 0.0)

    def test_frozen_after_completion(self):
        self.manager.start_new_game()
        self.clock.advance(seconds=20)
        self.manager.on_suspend()
        self.clock.advance(seconds=100)
        self.manager.on_resume()
        self.clock.advance(seconds=7)
        self.manager.make_guess("Bank")

        self.assertEqual(self.manager.current_game.completion_time, 27.0)
        self.clock.advance(seconds=1000)
        self.assertEqual(self.manager.elapsed_time(), 27.0)


class TestListenersAndReset(SessionTestCase):
    """Test change notification and the reset flow."""

    def test_listener_notified(self):
        listener = MagicMock()
        self.manager.add_listener(listener)
        self.manager.start_new_game()
        self.manager.make_guess("Monument")
        self.assertEqual(listener.call_count, 2)
        listener.assert_called_with(self.manager)

        self.manager.remove_listener(listener)
        self.manager.make_guess("Bank")
        self.assertEqual(listener.call_count, 2)

    def test_failing_listener_ignored(self):
        self.manager.add_listener(MagicMock(side_effect=ValueError("boom")))
        self.assertTrue(self.manager.start_new_game())

    def test_reset(self):
        self.manager.start_new_game()
        self.manager.make_guess("Bank")
        day_index = self.manager.day_index()

        self.manager.reset()
        self.assertEqual(self.manager.state, GameState.WAITING)
        self.assertEqual(self.manager.day_index(), day_index + 1)
        self.assertEqual(self.store.stats.total_games, 0)
        self.assertTrue(self.manager.start_new_game())

    def test_day_index(self):
        self.assertEqual(self.manager.day_index(), 61)  # 1 March in a leap year


class TestFromConfig(unittest.TestCase):
    """Test building a manager from configuration."""

    def test_file_backed_manager(self):
        clock = ManualClock(datetime(2024, 3, 1, 9, 0))
        with tempfile.TemporaryDirectory() as tmp:
            manager = GameSessionManager.from_config(GameConfig(data_dir=Path(tmp)), clock=clock)
            self.assertEqual(manager.state, GameState.WAITING)
            self.assertTrue(manager.start_new_game())
            self.assertTrue(manager.current_game.station.is_multi_line)
            self.assertTrue((Path(tmp) / "currentGame.json").exists())

    def test_explicit_config_sets_recent_capacity(self):
        clock = ManualClock(datetime(2024, 3, 1, 9, 0))
        store = GameStore(MemoryBackend(), clock=clock)
        GameSessionManager(store, make_catalog(), config=GameConfig(recent_capacity=2))
        self.assertEqual(store.recent_capacity, 2)

        for i in range(4):
            station = Station(name=f"Station {i}", lines=(CENTRAL, NORTHERN), trivia="", location="")
            store.complete_game(GameRound(station=station, date=clock.now()), won=False)
        self.assertEqual(store.stats.recent_station_ids, ["station2", "station3"])

    def test_store_capacity_kept_without_config(self):
        store = GameStore(MemoryBackend(), clock=ManualClock(datetime(2024, 3, 1, 9, 0)), recent_capacity=7)
        GameSessionManager(store, make_catalog())
        self.assertEqual(store.recent_capacity, 7)


class TestElapsedTimeTicker(SessionTestCase):
    """Test the display refresher."""

    def test_tick_only_while_playing(self):
        on_tick = MagicMock()
        ticker = ElapsedTimeTicker(self.manager, on_tick, interval=0.01)

        ticker.tick()
        on_tick.assert_not_called()

        self.manager.start_new_game()
        self.clock.advance(seconds=3)
        ticker.tick()
        on_tick.assert_called_once_with(3.0)

    def test_start_stop(self):
        ticker = ElapsedTimeTicker(self.manager, MagicMock(), interval=0.01)
        ticker.start()
        self.assertTrue(ticker.running)
        ticker.stop()
        self.assertFalse(ticker.running)

    def test_restart_after_slow_tick_leaves_one_thread(self):
        entered = threading.Event()
        release = threading.Event()

        def slow_tick(elapsed):
            entered.set()
            release.wait(5)

        self.manager.start_new_game()
        ticker = ElapsedTimeTicker(self.manager, slow_tick, interval=0.01)
        ticker.start()
        first = ticker._thread
        self.assertTrue(entered.wait(5))

        ticker.stop()  # join times out while the first thread is blocked
        ticker.start()
        second = ticker._thread
        self.assertIsNot(first, second)

        release.set()
        first.join(5)
        self.assertFalse(first.is_alive())
        self.assertTrue(second.is_alive())

        ticker.stop()
        second.join(5)
        self.assertFalse(second.is_alive())


if __name__ == "__main__":
    unittest.main()
