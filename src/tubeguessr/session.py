"""Daily game session manager."""

import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from .catalog import StationCatalog
from .clock import Clock, day_of_year
from .config import LOCATION_HINT_MIN_GUESSES, TRIVIA_HINT_MIN_GUESSES, GameConfig
from .matcher import is_guess_correct, is_valid_guess
from .models import GameRound, GameStats, Station
from .selector import select_daily_station
from .store import FileBackend, GameStore
from .stats import StatsAggregator

logger = logging.getLogger(__name__)


class GameState(Enum):
    """Where the player is in today's round."""
    WAITING = "waiting"
    PLAYING = "playing"
    COMPLETED = "completed"
    ALREADY_PLAYED = "already_played"


class GuessOutcome(Enum):
    """Result of submitting a guess."""
    CORRECT = "correct"
    INCORRECT = "incorrect"
    INVALID = "invalid"  # Empty or whitespace-only; not counted
    NOT_PLAYING = "not_playing"  # No round in progress


StateListener = Callable[["GameSessionManager"], None]


class GameSessionManager:
    """
    Runs the daily round: picks the station, checks guesses, tracks hints
    and elapsed time, and hands finished rounds to the store.

    Collaborators are injected:
    - ``access_provider`` returns True when the player has unlimited plays.
    - ``badge_clearer`` clears any pending reminder when a round starts.
    - ``clock`` supplies the current time and calendar day.

    The platform shell calls :meth:`on_suspend` and :meth:`on_resume` on
    background/foreground transitions. Presentation code subscribes with
    :meth:`add_listener` and reads :attr:`state` and :attr:`current_game`.

    An explicit ``config`` overrides the store's recent-station capacity.
    """

    def __init__(
        self,
        store: GameStore,
        catalog: StationCatalog,
        clock: Optional[Clock] = None,
        access_provider: Optional[Callable[[], bool]] = None,
        badge_clearer: Optional[Callable[[], None]] = None,
        config: Optional[GameConfig] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.clock = clock or store.clock
        self.config = config or GameConfig()
        if config is not None:
            store.recent_capacity = config.recent_capacity
        self._access_provider = access_provider or (lambda: False)
        self._badge_clearer = badge_clearer

        self._lock = threading.RLock()
        self._listeners: List[StateListener] = []

        self.current_game: Optional[GameRound] = None
        self.state = GameState.WAITING
        self.testing_day_offset = 0
        self._has_unlimited_access = False
        # When the current foreground stretch of play began; None while suspended
        self._session_start_time: Optional[datetime] = None

        self.check_game_state()

    @classmethod
    def from_config(
        cls,
        config: Optional[GameConfig] = None,
        clock: Optional[Clock] = None,
        access_provider: Optional[Callable[[], bool]] = None,
        badge_clearer: Optional[Callable[[], None]] = None,
    ) -> "GameSessionManager":
        """Build a manager backed by files in ``config.data_dir`` and the bundled catalog."""
        config = config or GameConfig.from_env()
        store = GameStore(
            FileBackend(config.data_dir),
            clock=clock,
            recent_capacity=config.recent_capacity,
            background=config.background_writes,
        )
        return cls(
            store,
            StationCatalog.default(),
            clock=clock,
            access_provider=access_provider,
            badge_clearer=badge_clearer,
            config=config,
        )

    # Listeners

    def add_listener(self, listener: StateListener) -> None:
        """Register a callback invoked after every state or round change."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"State listener failed: {e}", exc_info=True)

    # Access

    def _sync_access(self) -> bool:
        try:
            self._has_unlimited_access = bool(self._access_provider())
        except Exception as e:
            logger.error(f"Access provider failed, assuming limited access: {e}", exc_info=True)
            self._has_unlimited_access = False
        return self._has_unlimited_access

    @property
    def has_unlimited_access(self) -> bool:
        return self._has_unlimited_access

    def refresh_access(self) -> None:
        """Re-poll the access provider and reconcile state with it."""
        self.check_game_state()

    def can_play_today(self) -> bool:
        return self.store.can_play_today(self._has_unlimited_access)

    # State

    @property
    def stats(self) -> GameStats:
        return self.store.stats

    @property
    def aggregator(self) -> StatsAggregator:
        return self.store.aggregator

    def day_index(self) -> int:
        """Day-of-year used to seed station selection, plus any testing offset."""
        return day_of_year(self.clock.today()) + self.testing_day_offset

    def check_game_state(self) -> GameState:
        """
        Reconcile in-memory state with what is persisted.

        Called at construction and whenever the app returns to the
        foreground or the access level changes.

        Returns:
            The resulting GameState.
        """
        with self._lock:
            self._sync_access()
            self._reconcile()
            self._notify()
            return self.state

    def _reconcile(self) -> None:
        existing = self.store.current_game

        if existing is not None:
            if not self.clock.is_today(existing.date):
                logger.info(f"Discarding stale round {existing.round_id} from {existing.date.date()}")
                self.store.clear_current_game()
            elif existing.is_completed:
                self.current_game = existing
                self.state = GameState.COMPLETED
                return
            else:
                self.current_game = existing
                self.state = GameState.PLAYING
                if self._session_start_time is None:
                    self._session_start_time = self.clock.now()
                return

        # A round finished today can still be shown
        history = self.store.stats.history
        if history and self.clock.is_today(history[-1].date):
            self.current_game = history[-1]
            self.state = GameState.COMPLETED
            return

        self.current_game = None
        self._session_start_time = None
        if not self.can_play_today():
            self.state = GameState.ALREADY_PLAYED
            return

        self.state = GameState.WAITING

    def start_new_game(self) -> bool:
        """
        Start today's round if the quota allows it.

        Unlimited-access players discard a completed round and get a new one.

        Returns:
            True if a round is now in progress.
        """
        with self._lock:
            self._sync_access()

            if self.state == GameState.PLAYING and self.current_game is not None and not self.current_game.is_completed:
                logger.debug("Round already in progress")
                return False

            if self.current_game is not None and self.current_game.is_completed and self._has_unlimited_access:
                self.store.clear_current_game()
                self.current_game = None

            if not self.can_play_today():
                if self.current_game is None or not self.current_game.is_completed:
                    self.state = GameState.ALREADY_PLAYED
                else:
                    self.state = GameState.COMPLETED
                logger.info("Daily quota reached; not starting a new round")
                self._notify()
                return False

            try:
                station = self.select_daily_station()
            except ValueError as e:
                logger.error(f"Could not select a station: {e}")
                return False

            self._clear_badge()

            now = self.clock.now()
            game = GameRound(station=station, date=now)

            self.current_game = game
            self.store.save_current_game(game)
            self.state = GameState.PLAYING
            self._session_start_time = now

            logger.info(f"Started round {game.round_id} for day {self.day_index()}")
            self._notify()
            return True

    def _clear_badge(self) -> None:
        if self._badge_clearer is None:
            return
        try:
            self._badge_clearer()
        except Exception as e:
            logger.warning(f"Could not clear badge: {e}")

    def select_daily_station(self) -> Station:
        """Station for today given the recently played ones."""
        return select_daily_station(
            self.catalog.all_stations(),
            self.store.stats.recent_station_ids,
            self.day_index(),
            seed_multiplier=self.config.seed_multiplier,
        )

    def make_guess(self, guess: str) -> GuessOutcome:
        """
        Submit a guess for the current round.

        Args:
            guess: Free-text station name.

        Returns:
            GuessOutcome; INVALID and NOT_PLAYING leave the round untouched.
        """
        with self._lock:
            game = self.current_game
            if self.state != GameState.PLAYING or game is None or game.is_completed or game.remaining_guesses <= 0:
                logger.debug("Guess ignored: no round in progress")
                return GuessOutcome.NOT_PLAYING

            if not is_valid_guess(guess):
                logger.debug("Guess ignored: empty input")
                return GuessOutcome.INVALID

            guess = guess.strip()
            game.guesses.append(guess)
            correct = is_guess_correct(guess, game.station)
            logger.debug(f"Guess {len(game.guesses)} '{guess}': {'correct' if correct else 'incorrect'}")

            if correct or game.remaining_guesses == 0:
                self._finish(game, won=correct)
            else:
                self.store.save_current_game(game)

            self._notify()
            return GuessOutcome.CORRECT if correct else GuessOutcome.INCORRECT

    def _finish(self, game: GameRound, won: bool) -> None:
        game.completion_time = self.elapsed_time()
        self._session_start_time = None
        self.store.complete_game(game, won=won)
        self.state = GameState.COMPLETED

    # Hints

    @property
    def can_use_location_hint(self) -> bool:
        game = self.current_game
        return game is not None and not game.location_hint_used and len(game.guesses) >= LOCATION_HINT_MIN_GUESSES

    @property
    def can_use_hint(self) -> bool:
        game = self.current_game
        return game is not None and not game.hints_used and len(game.guesses) >= TRIVIA_HINT_MIN_GUESSES

    def use_hint(self) -> bool:
        """Reveal the trivia hint. Returns False if already used or no round."""
        with self._lock:
            game = self.current_game
            if game is None or game.is_completed or game.hints_used:
                return False
            game.hints_used = True
            self.store.save_current_game(game)
            self._notify()
            return True

    def use_location_hint(self) -> bool:
        """Reveal the location hint. Returns False if already used or no round."""
        with self._lock:
            game = self.current_game
            if game is None or game.is_completed or game.location_hint_used:
                return False
            game.location_hint_used = True
            self.store.save_current_game(game)
            self._notify()
            return True

    # Time

    def elapsed_time(self) -> float:
        """
        Seconds spent on the current round while in the foreground.

        Frozen at the completion time once the round is over.
        """
        with self._lock:
            game = self.current_game
            if game is None:
                return 0.0

            if game.is_completed and game.completion_time is not None:
                return game.completion_time

            current_session = 0.0
            if self._session_start_time is not None:
                current_session = max(0.0, (self.clock.now() - self._session_start_time).total_seconds())

            return max(0.0, game.accumulated_elapsed_time + current_session)

    def on_suspend(self) -> None:
        """Fold the running session time into the round when the app backgrounds."""
        with self._lock:
            game = self.current_game
            if game is None or game.is_completed or self.state != GameState.PLAYING:
                return

            if self._session_start_time is not None:
                delta = max(0.0, (self.clock.now() - self._session_start_time).total_seconds())
                game.accumulated_elapsed_time += delta
                self.store.save_current_game(game)
            self._session_start_time = None

    def on_resume(self) -> None:
        """Restart the session timer when the app returns to the foreground."""
        with self._lock:
            game = self.current_game
            if game is None or game.is_completed or self.state != GameState.PLAYING:
                return
            if self._session_start_time is None:
                self._session_start_time = self.clock.now()

    # Maintenance

    def reset(self) -> None:
        """Wipe stored progress and move to a different day's station."""
        with self._lock:
            self.store.reset()
            self.testing_day_offset += 1
            self.current_game = None
            self._session_start_time = None
            self.state = GameState.WAITING
            logger.info(f"Reset game data; day offset now {self.testing_day_offset}")
            self._notify()
