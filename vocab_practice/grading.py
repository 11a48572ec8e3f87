import string
from typing import Iterable

_ASCII_FOLD = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


def normalize_answer(text: str) -> str:
    """Trim surrounding whitespace and fold ASCII letters to lower case.

    Only ``A-Z`` are folded; other scripts are compared as typed. Full-width
    spaces from Japanese input methods count as whitespace and are trimmed.
    """
    return text.strip().translate(_ASCII_FOLD)


def is_correct(accepted_answers: Iterable[str], user_answer: str) -> bool:
    """
    Grade a submitted answer against a word's accepted answers.

    Rules:
      - the user answer is trimmed and ASCII case-folded, as is every accepted answer
      - the result is True only on an exact match with one accepted answer
        (no substring, prefix or edit-distance matching)
      - blank input is never correct, whatever the accepted answers contain
      - primary and alternative answers are equally valid; synonyms are
        display hints and are never passed in here

    >>> is_correct(["run", "jog"], " Run ")
    True
    >>> is_correct(["run", "jog"], "running")
    False
    """
    normalized = normalize_answer(user_answer)
    if not normalized:
        return False
    return any(normalize_answer(answer) == normalized for answer in accepted_answers)
