"""
mSRC Reporting - Declarative indicator maps

A domain's question_id -> indicator mapping lives in one table, declared once
and shared by every endpoint that reads the domain. Two shapes:

- TrackerMap: per-school indicators decoded from pivot answers (re-entry,
  TVET, WASH).
- SumMap: SQL-side `SUM(CASE WHEN question_id = N ...)` aggregation with
  gender triples assembled afterwards (Right to Play).
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from sqlalchemy import Integer, case, cast, func

from msrc_reporting.reporting.answers import (
    Answer, as_choices, as_number, as_text, is_affirmative
)
from msrc_reporting.reporting.calculations import gender_triple, to_int

NUMBER = "number"
FLAG = "flag"
TEXT = "text"
CHOICES = "choices"

_DECODERS = {
    NUMBER: as_number,
    FLAG: is_affirmative,
    TEXT: as_text,
    CHOICES: as_choices,
}


@dataclass(frozen=True)
class Field:
    name: str
    question_id: int
    kind: str = NUMBER
    default: Any = None


@dataclass(frozen=True)
class TrackerMap:
    version: str
    fields: Tuple[Field, ...]

    @property
    def question_ids(self) -> Tuple[int, ...]:
        return tuple(f.question_id for f in self.fields)

    def extract(self, answers: Mapping[int, Answer]) -> Dict[str, Any]:
        """Indicator dict for one submission; unanswered questions take the field default."""
        indicators = {}
        for f in self.fields:
            answer = answers.get(f.question_id)
            if answer is None:
                indicators[f.name] = _empty(f)
            else:
                indicators[f.name] = _DECODERS[f.kind](answer)
        return indicators


def _empty(f: Field):
    if f.default is not None:
        return f.default
    if f.kind == FLAG:
        return False
    if f.kind == TEXT:
        return ""
    if f.kind == CHOICES:
        return []
    return 0


@dataclass(frozen=True)
class Sum:
    """Scalar indicator: the sum of one or more questions."""
    name: str
    question_ids: Tuple[int, ...]


@dataclass(frozen=True)
class Split:
    """Gender-split indicator: {total, male, female}."""
    name: str
    male: Tuple[int, ...]
    female: Tuple[int, ...]


Indicator = Union[Sum, Split]


def column_label(question_id: int) -> str:
    return f"q_{question_id}"


@dataclass(frozen=True)
class SumMap:
    version: str
    indicators: Tuple[Indicator, ...]

    @property
    def question_ids(self) -> Tuple[int, ...]:
        ids = []
        for indicator in self.indicators:
            if isinstance(indicator, Split):
                ids.extend(indicator.male + indicator.female)
            else:
                ids.extend(indicator.question_ids)
        return tuple(sorted(set(ids)))

    def columns(self, question_column, value_column):
        """One labelled SUM(CASE ...) per question; answer text is cast to integer."""
        return [
            func.sum(
                case((question_column == question_id, cast(value_column, Integer)), else_=0)
            ).label(column_label(question_id))
            for question_id in self.question_ids
        ]

    def get(self, name: str) -> Indicator:
        for indicator in self.indicators:
            if indicator.name == name:
                return indicator
        raise KeyError(name)

    def build(self, row: Optional[Mapping]) -> Dict[str, Any]:
        """Turn one aggregate row (possibly None / all-NULL) into named indicators."""
        values = _sums(row)
        result = {}
        for indicator in self.indicators:
            if isinstance(indicator, Split):
                result[indicator.name] = gender_triple(
                    sum(values.get(q, 0) for q in indicator.male),
                    sum(values.get(q, 0) for q in indicator.female),
                )
            else:
                result[indicator.name] = sum(values.get(q, 0) for q in indicator.question_ids)
        return result

    def empty(self) -> Dict[str, Any]:
        return self.build(None)


def _sums(row: Optional[Mapping]) -> Dict[int, int]:
    if row is None:
        return {}
    mapping = row._mapping if hasattr(row, "_mapping") else row
    values = {}
    for key, value in mapping.items():
        if isinstance(key, str) and key.startswith("q_"):
            values[int(key[2:])] = to_int(value)
    return values
