"""Fuzzy detection of income kinds entered as free text.

Applicants list "other monthly income" as free-text entries, so sick pay
shows up as "Krankengeld", "Kranken-Geld", "KG" or with typos. Entries are
transliterated to lowercase ASCII via ICU, stripped of punctuation and then
compared against a configurable list of spellings.
"""

import re
from collections.abc import Iterable
from functools import lru_cache
from typing import ClassVar

import icu  # type: ignore[import-untyped]

SICK_PAY_VARIANTS: tuple[str, ...] = (
    "krankengeld",
    "kranken geld",
    "krank geld",
    "kg",
    "krankengelt",
    "krankengald",
    "krangengeld",
    "krankengel",
    "krangeld",
)


@lru_cache(maxsize=1)
def _transliterator() -> icu.Transliterator:
    return icu.Transliterator.createInstance(IncomeTypeMatcher.ICU_TRANSFORM)


def normalize_income_type(raw: str) -> str:
    """Lowercase ASCII form of a free-text income type without punctuation."""
    text = _transliterator().transliterate(raw)
    return IncomeTypeMatcher.PUNCTUATION_RE.sub("", text).strip()


class IncomeTypeMatcher:
    """Matches free-text income entries against known spellings.

    An entry matches when it contains a variant, or when it is itself a
    fragment of a variant and at least ``min_fragment_length`` long.
    Variants shorter than that (abbreviations such as "kg") only match as a
    whole word, otherwise "Bankguthaben" would count as sick pay.
    """

    ICU_TRANSFORM: ClassVar[str] = "Any-Latin; Latin-ASCII; Lower"
    PUNCTUATION_RE: ClassVar[re.Pattern[str]] = re.compile(r"[^\w\s]")

    def __init__(self, variants: Iterable[str], min_fragment_length: int = 5) -> None:
        self._variants = tuple(normalize_income_type(v) for v in variants)
        self._min_fragment_length = min_fragment_length

    def matches(self, raw: str | None) -> bool:
        if not raw or not isinstance(raw, str):
            return False
        normalized = normalize_income_type(raw)
        if not normalized:
            return False
        words = normalized.split()
        for variant in self._variants:
            if len(variant) < self._min_fragment_length:
                if variant in words:
                    return True
                continue
            if variant in normalized:
                return True
            if len(normalized) >= self._min_fragment_length and normalized in variant:
                return True
        return False

    def any_match(self, entries: Iterable[str]) -> bool:
        return any(self.matches(entry) for entry in entries)


sick_pay_matcher = IncomeTypeMatcher(SICK_PAY_VARIANTS)
