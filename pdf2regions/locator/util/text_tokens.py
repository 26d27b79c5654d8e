import re
from typing import List

from pdf2regions.locator.util.policy import Granularity

# letters and digits only; underscores are punctuation here
_TOKEN_RE = re.compile(r"[^\W_]+")
_SENTENCE_END_RE = re.compile(r"[.!?]+")
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


def normalize_whitespace(text: str) -> str:
    return " ".join(text.split())


def tokens(text: str) -> set[str]:
    """Lowercase alphanumeric token set of `text`."""
    return set(_TOKEN_RE.findall(text.casefold()))


def jaccard(left: set[str], right: set[str]) -> float:
    """|intersection| / |union|; 0.0 when both sets are empty."""
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def similarity(target: str, candidate: str) -> float:
    return jaccard(tokens(target), tokens(candidate))


def chunks(text: str, granularity: Granularity = Granularity.SENTENCE) -> List[str]:
    """Cut page text into fuzzy match candidates, whitespace collapsed, empties dropped."""
    if granularity == Granularity.WORD:
        parts = text.split()
    elif granularity == Granularity.PARAGRAPH:
        parts = _PARAGRAPH_BREAK_RE.split(text)
    else:
        parts = _SENTENCE_END_RE.split(text)
    result = []
    for part in parts:
        part = normalize_whitespace(part)
        if part:
            result.append(part)
    return result
