"""Text utilities for the scramble engine."""

import re

# Chinese and ASCII sentence punctuation plus whitespace
_SEGMENT_SPLIT = re.compile(r'[，。！？、；：“”‘’（）《》,.!?;:()\s]+')

# CJK ideographs, CJK punctuation, halfwidth/fullwidth forms and whitespace
_ALLOWED_CHARS = re.compile(r'^[一-鿿　-〿＀-￯\s]*$')

# ASCII or fullwidth digits and Latin letters
_DIGITS_OR_LATIN = re.compile(r'[0-9A-Za-z０-９Ａ-Ｚａ-ｚ]')


def segment_sentence(text: str) -> list[str]:
    """Split a sentence into words on punctuation and whitespace."""
    return [w for w in _SEGMENT_SPLIT.split(text or '') if w]


def is_valid_chinese_text(text: str) -> bool:
    """True if text holds only Chinese characters, punctuation and whitespace."""
    if not _ALLOWED_CHARS.match(text or ''):
        return False
    return not _DIGITS_OR_LATIN.search(text or '')


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def levenshtein_similarity(a: str, b: str) -> float:
    """Normalized similarity in [0, 1]; 1.0 for identical or both-empty strings."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest
