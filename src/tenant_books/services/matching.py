"""Description normalization and the scores used to compare statement rows."""

import re
from collections import Counter
from datetime import date
from decimal import Decimal

DUPLICATE_DATE_WINDOW_DAYS = 3
DUPLICATE_SIMILARITY = 0.8
DUPLICATE_THRESHOLD = 80

SCORE_DATE = 40
SCORE_AMOUNT = 40
SCORE_DESCRIPTION = 20

_NON_ALNUM = re.compile(r"[^a-z0-9\s]+")
_WHITESPACE = re.compile(r"\s+")


def normalize_description(text: str | None) -> str:
    """Lowercase, drop everything but letters, digits and spaces, collapse whitespace."""
    if not text:
        return ""
    cleaned = _NON_ALNUM.sub("", text.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def bigram_similarity(first: str, second: str) -> float:
    """Dice coefficient over character bigrams, ignoring whitespace.

    1.0 for identical strings, 0.0 when either has fewer than two characters.
    """
    a = _WHITESPACE.sub("", first)
    b = _WHITESPACE.sub("", second)
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0

    bigrams = Counter(a[i : i + 2] for i in range(len(a) - 1))
    overlap = 0
    for i in range(len(b) - 1):
        pair = b[i : i + 2]
        if bigrams[pair] > 0:
            bigrams[pair] -= 1
            overlap += 1
    return 2 * overlap / (len(a) + len(b) - 2)


def description_similarity(first: str | None, second: str | None) -> float:
    a = normalize_description(first)
    b = normalize_description(second)
    if not a or not b:
        return 0.0
    return bigram_similarity(a, b)


def duplicate_score(
    first_date: date,
    first_amount: Decimal,
    first_description: str,
    second_date: date,
    second_amount: Decimal,
    second_description: str,
) -> int:
    score = 0
    if abs((first_date - second_date).days) <= DUPLICATE_DATE_WINDOW_DAYS:
        score += SCORE_DATE
    if first_amount == second_amount:
        score += SCORE_AMOUNT
    if description_similarity(first_description, second_description) >= DUPLICATE_SIMILARITY:
        score += SCORE_DESCRIPTION
    return score
