"""Play today's TubeGuessr round in the terminal."""

import logging
import sys
from pathlib import Path

# Add src to path so we can import tubeguessr
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tubeguessr.config import GameConfig
from tubeguessr.session import GameSessionManager, GameState, GuessOutcome
from tubeguessr.stats import format_time, format_try_text

config = GameConfig.from_env()

# Set up logging
logging.basicConfig(
    level=getattr(logging, config.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def print_stats(manager: GameSessionManager):
    """Display the stats screen."""
    summary = manager.aggregator.summary()
    print(f"\n{'='*50}")
    print("STATISTICS")
    print(f"{'='*50}")
    print(f"Played: {summary['total_games']}   Won: {summary['total_wins']}   Win rate: {summary['win_rate'] * 100:.1f}%")
    print(f"Streak: {summary['current_streak']}   Best: {summary['max_streak']}   Hints used: {summary['total_hints_used']}")
    if summary["average_guesses"] > 0:
        print(f"Average guesses: {summary['average_guesses']:.1f}")
    if summary["average_completion_time"] > 0:
        print(f"Average time: {format_time(summary['average_completion_time'])}")

    recent = manager.aggregator.recent_history()
    if recent:
        print("\nRecent rounds:")
        for game in recent:
            result = format_try_text(len(game.guesses)) if game.is_win else "Missed"
            print(f"  {game.date.strftime('%d %b %Y')}  {game.station.name:<28} {result}")
    print()


def print_result(manager: GameSessionManager):
    game = manager.current_game
    if game is None:
        return
    if game.is_win:
        print(f"\nCorrect! It was {game.station.name} ({format_try_text(len(game.guesses))})")
    else:
        print(f"\nOut of guesses. It was {game.station.name}.")
    print(f"Time: {format_time(manager.elapsed_time())}")


def play(manager: GameSessionManager):
    """Prompt for guesses until the round is over."""
    game = manager.current_game
    print(f"\nToday's station is served by: {', '.join(line.name for line in game.station.lines)}")
    print("Commands: 'hint' (trivia), 'where' (location), 'quit'\n")

    while manager.state == GameState.PLAYING:
        try:
            user_input = input(f"Guess ({game.remaining_guesses} left): ").strip()
        except (KeyboardInterrupt, EOFError):
            manager.on_suspend()
            print("\nRound saved. Come back later!")
            return

        if user_input.lower() in ["quit", "q", "exit"]:
            manager.on_suspend()
            print("Round saved. Come back later!")
            return

        if user_input.lower() == "where":
            if not manager.can_use_location_hint and not game.location_hint_used:
                print("  Make a guess first.")
            else:
                manager.use_location_hint()
                print(f"  Location: {game.station.location}")
            continue

        if user_input.lower() == "hint":
            if not manager.can_use_hint and not game.hints_used:
                print("  Trivia unlocks after 3 guesses.")
            else:
                manager.use_hint()
                print(f"  Trivia: {game.station.trivia}")
            continue

        outcome = manager.make_guess(user_input)
        if outcome == GuessOutcome.INVALID:
            continue
        if outcome == GuessOutcome.INCORRECT:
            print("  Not quite.")

    print_result(manager)


def main():
    try:
        manager = GameSessionManager.from_config(config)
    except Exception as e:
        logger.error(f"Failed to start: {e}", exc_info=True)
        print(f"Error: {e}")
        sys.exit(1)

    if manager.state in (GameState.WAITING, GameState.PLAYING):
        if manager.state == GameState.WAITING:
            manager.start_new_game()
        play(manager)
    elif manager.state == GameState.COMPLETED:
        print("You've already played today.")
        print_result(manager)
    else:
        print("You've already played today. Come back tomorrow!")

    print_stats(manager)
    manager.store.close()


if __name__ == "__main__":
    main()
