"""
mSRC Reporting - Pivot answers

Tracker responses store one value per (submission, question) in whichever of
numeric_response / text_response / single_choice_response /
multiple_choice_response the question's type names. Rows are decoded once
into an Answer here; indicator code only ever sees the decoded value.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

from msrc_reporting.reporting.calculations import to_float

logger = logging.getLogger(__name__)

QUESTION_NUMERIC = "numeric"
QUESTION_TEXT = "text"
QUESTION_SINGLE_CHOICE = "single_choice"
QUESTION_MULTIPLE_CHOICE = "multiple_choice"

AFFIRMATIVE = {"yes", "y", "true", "1"}


@dataclass(frozen=True)
class Numeric:
    value: float


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class SingleChoice:
    option: str


@dataclass(frozen=True)
class MultipleChoice:
    options: Tuple[str, ...]


Answer = Union[Numeric, Text, SingleChoice, MultipleChoice]


def _choices(raw: Any) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, (list, tuple)):
        return tuple(str(item) for item in raw)
    text = str(raw).strip()
    if not text:
        return ()
    try:
        parsed = json.loads(text)
    except ValueError:
        # Legacy rows were stored comma separated
        return tuple(part.strip() for part in text.split(",") if part.strip())
    if isinstance(parsed, list):
        return tuple(str(item) for item in parsed)
    return (str(parsed),)


def decode_answer(row, question_type: Optional[str]) -> Optional[Answer]:
    """
    Decode one response row using its question's type. Rows whose question is
    unknown fall back to the first populated column in the order numeric,
    single choice, multiple choice, text.
    """
    if question_type == QUESTION_NUMERIC:
        return Numeric(to_float(row.numeric_response)) if row.numeric_response is not None else None
    if question_type == QUESTION_TEXT:
        return Text(str(row.text_response)) if row.text_response is not None else None
    if question_type == QUESTION_SINGLE_CHOICE:
        return SingleChoice(str(row.single_choice_response)) if row.single_choice_response is not None else None
    if question_type == QUESTION_MULTIPLE_CHOICE:
        return MultipleChoice(_choices(row.multiple_choice_response))

    if question_type is not None:
        logger.warning("Unknown question_type %r for question %s", question_type, row.question_id)
    if row.numeric_response is not None:
        return Numeric(to_float(row.numeric_response))
    if row.single_choice_response is not None:
        return SingleChoice(str(row.single_choice_response))
    if row.multiple_choice_response is not None:
        return MultipleChoice(_choices(row.multiple_choice_response))
    if row.text_response is not None:
        return Text(str(row.text_response))
    return None


def as_number(answer: Optional[Answer]) -> Union[int, float]:
    """Numeric value of an answer; whole numbers come back as int."""
    if isinstance(answer, Numeric):
        value = answer.value
    elif isinstance(answer, (Text, SingleChoice)):
        value = to_float(answer.value if isinstance(answer, Text) else answer.option)
    else:
        return 0
    return int(value) if float(value).is_integer() else value


def as_text(answer: Optional[Answer]) -> str:
    if answer is None:
        return ""
    if isinstance(answer, Numeric):
        value = answer.value
        return str(int(value)) if value == int(value) else str(value)
    if isinstance(answer, Text):
        return answer.value
    if isinstance(answer, SingleChoice):
        return answer.option
    return ", ".join(answer.options)


def as_choices(answer: Optional[Answer]) -> list:
    if isinstance(answer, MultipleChoice):
        return list(answer.options)
    if isinstance(answer, SingleChoice):
        return [answer.option]
    return []


def is_affirmative(answer: Optional[Answer]) -> bool:
    if isinstance(answer, (SingleChoice, Text)):
        raw = answer.option if isinstance(answer, SingleChoice) else answer.value
        return raw.strip().lower() in AFFIRMATIVE
    if isinstance(answer, Numeric):
        return answer.value == 1
    return False
