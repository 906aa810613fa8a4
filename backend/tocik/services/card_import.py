"""
Bulk flashcard import from CSV.

Columns: question, answer, [difficulty], [tags]. The first row is a header and
is always skipped. Tags are "|"-separated; unknown difficulty labels fall back
to medium. Rows missing a question or answer are reported, not imported.
"""
from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field

from tocik.models.flashcard import Difficulty, FlashcardCreate

_DIFFICULTY_LABELS = {
    "easy": Difficulty.EASY,
    "简单": Difficulty.EASY,
    "medium": Difficulty.MEDIUM,
    "中等": Difficulty.MEDIUM,
    "hard": Difficulty.HARD,
    "困难": Difficulty.HARD,
}

TEMPLATE_CSV = (
    "question,answer,difficulty,tags\n"
    '"What is the powerhouse of the cell?","Mitochondria","easy","biology|cells"\n'
    '"Define osmosis","Diffusion of water across a membrane, high to low concentration","medium","biology"\n'
)


class CardImportError(ValueError):
    """The upload could not be read as CSV at all."""


@dataclass
class ParsedImport:
    cards: list[FlashcardCreate] = field(default_factory=list)
    skipped_rows: list[int] = field(default_factory=list)  # 1-based line numbers


def parse_difficulty(label: str) -> Difficulty:
    return _DIFFICULTY_LABELS.get(label.strip().lower(), Difficulty.MEDIUM)


def parse_flashcard_csv(text: str, deck_id: str) -> ParsedImport:
    result = ParsedImport()
    reader = csv.reader(io.StringIO(text), skipinitialspace=True, strict=True)
    try:
        for index, row in enumerate(reader):
            if index == 0 or not any(col.strip() for col in row):
                continue
            question = row[0].strip() if len(row) > 0 else ""
            answer = row[1].strip() if len(row) > 1 else ""
            if not question or not answer:
                result.skipped_rows.append(reader.line_num)
                continue
            difficulty = parse_difficulty(row[2]) if len(row) > 2 else Difficulty.MEDIUM
            tags = [t.strip() for t in row[3].split("|") if t.strip()] if len(row) > 3 else []
            result.cards.append(
                FlashcardCreate(
                    deck_id=deck_id,
                    question=question,
                    answer=answer,
                    difficulty=difficulty,
                    tags=tags,
                )
            )
    except csv.Error as exc:
        raise CardImportError(f"malformed CSV near line {reader.line_num}: {exc}") from exc
    return result
