from __future__ import annotations

import re
import unicodedata
from enum import Enum


class Answer(str, Enum):
    YES = "yes"
    NO = "no"
    UNKNOWN = "unknown"


_YES_TOKENS = {"si", "s", "yes", "y", "yeah", "yep", "claro", "vale", "sure"}
_YES_PHRASES = {"por supuesto", "of course"}
_NO_TOKENS = {"no", "n", "nope", "nop", "nah"}
# Single letters only count when they are the whole answer.
_YES_LEADERS = _YES_TOKENS - {"s", "y"}
_NO_LEADERS = _NO_TOKENS - {"n"}
_NEGATION_PHRASES = ("no soy", "no vivo", "no tengo", "not a", "i am not", "im not", "dont live")
_RESIDENCY_WORDS = {
    "residente",
    "resident",
    "owner",
    "propietario",
    "propietaria",
    "vecino",
    "vecina",
    "neighbor",
    "neighbour",
}

_PUNCTUATION = re.compile(r"[^\w\s]")


def _normalize(text: str) -> str:
    stripped = "".join(
        ch for ch in unicodedata.normalize("NFD", text or "") if not unicodedata.combining(ch)
    ).lower()
    return " ".join(_PUNCTUATION.sub("", stripped).split())


def classify_yes_no(text: str) -> Answer:
    t = _normalize(text)
    if not t:
        return Answer.UNKNOWN
    if t in _YES_TOKENS or t in _YES_PHRASES:
        return Answer.YES
    if t in _NO_TOKENS:
        return Answer.NO

    # An explicit negation outweighs a leading "si" or "yes".
    padded = f" {t} "
    if any(f" {phrase} " in padded for phrase in _NEGATION_PHRASES):
        return Answer.NO
    words = t.split()
    if words[0] in _YES_LEADERS:
        return Answer.YES
    if words[0] in _NO_LEADERS:
        return Answer.NO
    if any(word in _RESIDENCY_WORDS for word in words):
        return Answer.YES
    return Answer.UNKNOWN
