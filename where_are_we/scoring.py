"""Round scoring, guess matching and difficulty progression.

Points per round:
  base            1000
  time bonus      floor(remaining / 300 * 500)   0..500
  hints           -100 each
  translations    -50 each
  wrong guesses   -75 each
  total           clamped to 0, never negative

A guess matches an acceptable answer when, after trimming and lowercasing
both, they are equal, the guess contains the answer, or the answer contains
the guess. Any single answer matching is enough.

Difficulty ramps over a session: rounds 0-1 Easy, 2-3 Medium, 4+ Hard.
"""

from where_are_we.models import Difficulty, PointsBreakdown

BASE_POINTS = 1000
MAX_TIME_BONUS = 500
ROUND_SECONDS = 300
HINT_PENALTY = 100
TRANSLATION_PENALTY = 50
WRONG_GUESS_PENALTY = 75

# Result screen shows a "high score" badge from here up
EXCELLENT_THRESHOLD = 1400

TOTAL_ROUNDS = 6
MAX_PROGRESSIVE_HINTS = 3


def _clamp_time(time_remaining: int) -> int:
    return max(0, min(ROUND_SECONDS, int(time_remaining)))


def breakdown(
    time_remaining: int,
    hints_used: int,
    translations_used: int,
    wrong_guesses: int,
) -> PointsBreakdown:
    """Itemise a round's points. `total` is the clamped score."""
    time_bonus = _clamp_time(time_remaining) * MAX_TIME_BONUS // ROUND_SECONDS
    hint_penalty = hints_used * HINT_PENALTY
    translation_penalty = translations_used * TRANSLATION_PENALTY
    wrong_guess_penalty = wrong_guesses * WRONG_GUESS_PENALTY
    raw = BASE_POINTS + time_bonus - hint_penalty - translation_penalty - wrong_guess_penalty
    return PointsBreakdown(
        base=BASE_POINTS,
        time_bonus=time_bonus,
        hint_penalty=hint_penalty,
        translation_penalty=translation_penalty,
        wrong_guess_penalty=wrong_guess_penalty,
        total=max(0, raw),
    )


def score(
    time_remaining: int,
    hints_used: int,
    translations_used: int,
    wrong_guesses: int,
) -> int:
    """Return the points earned for a round.

    score(300, 0, 0, 0) -> 1500
    score(0, 3, 2, 1)   -> 525
    """
    return breakdown(time_remaining, hints_used, translations_used, wrong_guesses).total


def is_excellent(points: int) -> bool:
    return points >= EXCELLENT_THRESHOLD


def normalize(text: str) -> str:
    return text.strip().lower()


def is_correct_guess(guess: str, acceptable_answers: list[str]) -> bool:
    """Substring-tolerant, case-insensitive match against any acceptable answer.

    "Paris, France" matches "paris"; "par" matches "paris"; a blank guess
    matches nothing.
    """
    g = normalize(guess)
    if not g:
        return False
    for answer in acceptable_answers:
        a = normalize(answer)
        if not a:
            continue
        if g == a or a in g or g in a:
            return True
    return False


def difficulty_for_round(round_index: int) -> Difficulty:
    if round_index < 2:
        return "Easy"
    if round_index < 4:
        return "Medium"
    return "Hard"
