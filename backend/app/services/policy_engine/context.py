"""Evaluation context: flat dot-notation snapshot of application facts."""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterator, Mapping, Optional

_TRUE_WORDS = frozenset({"true", "1", "yes"})
_FALSE_WORDS = frozenset({"false", "0", "no"})


def parse_number(text: Optional[str]) -> Optional[Decimal]:
    """Parse a finite decimal number, returning None when the text is not one."""
    if text is None:
        return None
    stripped = text.strip()
    if not stripped:
        return None
    try:
        number = Decimal(stripped)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def parse_boolean(text: Optional[str]) -> Optional[bool]:
    """Parse true/false/1/0/yes/no (case-insensitive), None otherwise."""
    if text is None:
        return None
    word = text.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return None


def to_fact_text(value: Any) -> str:
    """Render a Python value as the string stored in the context."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class ValueKind(str, Enum):
    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"
    TEXT = "TEXT"


@dataclass(frozen=True)
class FactValue:
    """
    A context value parsed once into its possible typed readings.

    "1" is both the number 1 and boolean true; kind reports the strongest
    reading (number, then boolean, then text).
    """

    raw: str
    number: Optional[Decimal] = None
    boolean: Optional[bool] = None

    @classmethod
    def parse(cls, raw: str) -> "FactValue":
        return cls(raw=raw, number=parse_number(raw), boolean=parse_boolean(raw))

    @property
    def kind(self) -> ValueKind:
        if self.number is not None:
            return ValueKind.NUMBER
        if self.boolean is not None:
            return ValueKind.BOOLEAN
        return ValueKind.TEXT

    @property
    def text(self) -> str:
        return self.raw.strip()


class EvaluationContext:
    """
    Flat map of field path -> string value used as evaluation input.

    Values are stored exactly as supplied (stringified); typed readings are
    parsed lazily on first lookup and memoized for the rest of the
    evaluation. None values are never stored, so a missing key and a null
    fact are the same thing.

    Standard field paths:
        loan.type, loan.requestedAmount, loan.tenureMonths, loan.purpose, loan.branchCode
        applicant.cibilScore, applicant.riskCategory, applicant.age
        applicant.employmentType, applicant.monthlyIncome, applicant.yearsOfExperience
        property.estimatedValue, property.type
    """

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, str] = {}
        self._parsed: Dict[str, FactValue] = {}
        for field, value in (data or {}).items():
            self.put(field, value)

    def put(self, field: str, value: Any) -> "EvaluationContext":
        """Store a value (stringified); None is ignored."""
        if value is not None:
            self._data[field] = to_fact_text(value)
            self._parsed.pop(field, None)
        return self

    def get(self, field: str) -> Optional[str]:
        return self._data.get(field)

    def has_field(self, field: str) -> bool:
        return field in self._data

    def lookup(self, field: str) -> Optional[FactValue]:
        """Typed reading of a field, or None if the field is absent."""
        raw = self._data.get(field)
        if raw is None:
            return None
        parsed = self._parsed.get(field)
        if parsed is None:
            parsed = FactValue.parse(raw)
            self._parsed[field] = parsed
        return parsed

    def as_dict(self) -> Dict[str, str]:
        return dict(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __repr__(self) -> str:
        return f"<EvaluationContext(fields={len(self._data)})>"
