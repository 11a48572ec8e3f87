"""
CSV → word-creation records.

Expected header (order free, extra columns ignored)::

    japanese_meaning,primary_answer,alternative_answers,synonyms

``alternative_answers`` and ``synonyms`` hold comma-separated lists, so they
must be quoted when they contain more than one entry.

Every row is checked and every problem is reported; a bad row is skipped
without stopping the parse. The whole parse fails when any row failed.
"""
import csv
import io
from typing import Dict, List, Optional

from .structured import CreateWordRequest, ParseResult

MAX_ANSWERS = 10
MAX_SYNONYMS = 20
MAX_MEANING_LENGTH = 500
MAX_ANSWER_LENGTH = 255
MAX_SYNONYM_LENGTH = 100
MAX_BATCH_SIZE = 100

REQUIRED_COLUMNS = ("japanese_meaning", "primary_answer")


def _split_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [token.strip() for token in raw.split(",") if token.strip()]


def _validate_row(row: Dict[str, str], row_num: int) -> "CreateWordRequest | str":
    """Return a record for a valid row, or the error message for the first failed check."""
    raw_meaning = row.get("japanese_meaning") or ""
    meaning = raw_meaning.strip()
    if not meaning:
        return f"row {row_num}: japanese_meaning is required"

    primary = (row.get("primary_answer") or "").strip()
    if not primary:
        return f"row {row_num}: primary_answer is required"

    answers = [primary] + _split_list(row.get("alternative_answers"))
    if len(answers) > MAX_ANSWERS:
        return f"row {row_num}: at most {MAX_ANSWERS} answers are allowed (got {len(answers)})"

    synonyms = _split_list(row.get("synonyms"))
    if len(synonyms) > MAX_SYNONYMS:
        return f"row {row_num}: at most {MAX_SYNONYMS} synonyms are allowed (got {len(synonyms)})"

    # Length is checked on the cell as written, surrounding whitespace included
    if len(raw_meaning) > MAX_MEANING_LENGTH:
        return f"row {row_num}: japanese_meaning must be at most {MAX_MEANING_LENGTH} characters"

    if any(len(a) > MAX_ANSWER_LENGTH for a in answers):
        return f"row {row_num}: each answer must be at most {MAX_ANSWER_LENGTH} characters"

    if any(len(s) > MAX_SYNONYM_LENGTH for s in synonyms):
        return f"row {row_num}: each synonym must be at most {MAX_SYNONYM_LENGTH} characters"

    return CreateWordRequest(
        japanese_meaning=meaning,
        answers=answers,
        synonyms=synonyms or None,
    )


def parse_words_from_csv(content: str) -> ParseResult:
    """Parse CSV text into validated word records.

    Row numbers in messages are 1-based file rows: the header is row 1, so the
    first data row is row 2. Blank rows are dropped before numbering, so they
    never shift the row numbers of the rows after them.
    """
    if content.startswith("\ufeff"):
        content = content[1:]

    try:
        records = list(csv.reader(io.StringIO(content), strict=True))
    except csv.Error as e:
        return ParseResult(success=False, errors=[f"CSV parse error: {e}"])

    if not records or not any(cell.strip() for cell in records[0]):
        return ParseResult(success=False, errors=["CSV header row is missing"])

    header = [name.strip() for name in records[0]]
    missing = [name for name in REQUIRED_COLUMNS if name not in header]
    if missing:
        return ParseResult(
            success=False,
            errors=[f"CSV header is missing required column(s): {', '.join(missing)}"],
        )

    words: List[CreateWordRequest] = []
    errors: List[str] = []
    data_rows = [cells for cells in records[1:] if any(cell.strip() for cell in cells)]
    for index, cells in enumerate(data_rows):
        row_num = index + 2
        row = dict(zip(header, cells))
        outcome = _validate_row(row, row_num)
        if isinstance(outcome, str):
            errors.append(outcome)
        else:
            words.append(outcome)

    if errors:
        return ParseResult(success=False, errors=errors)

    if not words:
        return ParseResult(success=False, errors=["no valid word data found"])

    if len(words) > MAX_BATCH_SIZE:
        return ParseResult(
            success=False,
            errors=[f"at most {MAX_BATCH_SIZE} words can be imported at once (got {len(words)})"],
        )

    return ParseResult(success=True, words=words)


def parse_words_from_csv_file(csv_path: str) -> ParseResult:
    with open(csv_path, "r", encoding="utf-8-sig") as f:
        return parse_words_from_csv(f.read())
