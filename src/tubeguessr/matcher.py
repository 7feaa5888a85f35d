"""Guess normalization and fuzzy matching against station names."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Station

# Straight, left and right single quotes
APOSTROPHES = ("'", "‘", "’")
# Straight, left and right double quotes
QUOTES = ('"', "“", "”")
STRIPPED_PUNCTUATION = (" ", ".", ",", "-", "_")


def normalize(name: str) -> str:
    """
    Reduce a station name or guess to its comparison form.

    Lower-cases, drops quotes and apostrophes, drops spaces and the
    punctuation ``. , - _`` and spells ``&`` as ``and``.

    Args:
        name: Raw station name or player guess.

    Returns:
        Normalized string (e.g. "King's Cross St. Pancras" -> "kingscrossstpancras").
    """
    normalized = name.lower()

    for char in APOSTROPHES + QUOTES + STRIPPED_PUNCTUATION:
        normalized = normalized.replace(char, "")

    return normalized.replace("&", "and")


def is_valid_guess(guess: str) -> bool:
    """A guess must contain something other than whitespace."""
    return bool(guess and guess.strip())


def is_one_character_different(guess: str, correct: str) -> bool:
    """
    Check whether two normalized strings are exactly one edit apart.

    An edit is a single substitution (equal lengths) or a single insertion or
    deletion (lengths differ by one). Identical strings are not one edit apart.

    Args:
        guess: Normalized guess.
        correct: Normalized station name.

    Returns:
        True if exactly one edit separates the strings.
    """
    if abs(len(guess) - len(correct)) > 1:
        return False

    # Same length: only a substitution can explain the difference
    if len(guess) == len(correct):
        differences = 0
        for guess_char, correct_char in zip(guess, correct):
            if guess_char != correct_char:
                differences += 1
                if differences > 1:
                    return False
        return differences == 1

    # Lengths differ by one: skip the extra character in the longer string once
    if len(guess) < len(correct):
        shorter, longer = guess, correct
    else:
        shorter, longer = correct, guess

    shorter_index = 0
    longer_index = 0
    found_difference = False

    while shorter_index < len(shorter) and longer_index < len(longer):
        if shorter[shorter_index] != longer[longer_index]:
            if found_difference:
                return False
            found_difference = True
            longer_index += 1
        else:
            shorter_index += 1
            longer_index += 1

    return True


def is_guess_correct(guess: str, station: "Station") -> bool:
    """
    Decide whether a guess identifies a station.

    Args:
        guess: Raw player input.
        station: Target station.

    Returns:
        True for an exact normalized match or a match within one edit.
    """
    normalized_guess = normalize(guess)

    if normalized_guess == station.normalized_name:
        return True

    return is_one_character_different(normalized_guess, station.normalized_name)
