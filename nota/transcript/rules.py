"""
Phantom-text filter thresholds.
Changing these changes what enters the permanent transcript.
"""

import re

MIN_TEXT_CHARS = 3
MAX_REPETITION_RATIO = 3.0
MIN_WORDS_FOR_PERIOD_CHECK = 4

# Common false positives from recognizers fed silence or music
PHANTOM_PHRASES = (
    "thank you",
    "thanks for watching",
    "subscribe",
    "subtitles",
    "спасибо за просмотр",
    "подписывайтесь",
    "субтитры",
)

_PUNCT_RE = re.compile(r"[^\w\s]", re.UNICODE)
_SPACE_RE = re.compile(r"\s+")


def normalize(text: str) -> str:
    cleaned = _PUNCT_RE.sub(" ", str(text or "").lower())
    return _SPACE_RE.sub(" ", cleaned).strip()


def _is_phantom_phrase(normalized: str) -> bool:
    # A phrase counts only when it dominates the text, so real sentences
    # that happen to contain "thank you" survive.
    for phrase in PHANTOM_PHRASES:
        if phrase in normalized and len(phrase) * 2 >= len(normalized):
            return True
    return False


def _has_repeating_period(words: list[str]) -> bool:
    count = len(words)
    if count < MIN_WORDS_FOR_PERIOD_CHECK:
        return False
    for period in range(1, count // 2 + 1):
        if all(words[i] == words[i - period] for i in range(period, count)):
            return True
    return False


def is_phantom(text: str) -> bool:
    """
    True for text that must never be committed: empty or tiny strings,
    known hallucinated phrases, and heavily repeated word runs.
    """
    trimmed = str(text or "").strip()
    if len(trimmed) < MIN_TEXT_CHARS:
        return True

    normalized = normalize(trimmed)
    if len(normalized) < MIN_TEXT_CHARS:
        return True

    if _is_phantom_phrase(normalized):
        return True

    words = normalized.split()
    if len(words) >= 3 and len(set(words)) == 1:
        return True

    if len(words) > 1:
        ratio = len(words) / len(set(words))
        if ratio > MAX_REPETITION_RATIO:
            return True

    return _has_repeating_period(words)
