"""Hint content for each mode and hint level.

Level 1 is educational (meaning), level 2 reveals the start of the answer,
level 3 gives the most away. Content is drawn from the question metadata
when the catalog provides it, with fallbacks computed from the answer.
"""

from .errors import ValidationFailed
from .models import Mode


def _idiom_hint(level: int, target: str, metadata: dict) -> str:
    if level == 1:
        definition = metadata.get('definition', '')
        meaning = metadata.get('meaning', '')
        if definition:
            return f"Meaning: {definition}" + (f"\nEnglish: {meaning}" if meaning else '')
        if meaning:
            return f"Meaning: {meaning}"
        return "This is a common idiom"

    if level == 2:
        first = target[:1]
        pinyin = metadata.get('pinyin', '')
        hint = f"First character: {first}"
        if pinyin:
            hint += f"\nPinyin: {pinyin.split()[0]}"
        return hint

    usage = metadata.get('usage', '')
    if usage:
        return f"Usage: {usage}"
    origin = metadata.get('origin', '')
    if origin:
        return f"Origin: {origin}"
    return f"{len(target)} characters in total, think about where it is used"


def _sentence_hint(level: int, tokens: list[str], metadata: dict) -> str:
    authored = metadata.get('hints') or {}

    if level == 1:
        parts = []
        if metadata.get('meaning'):
            parts.append(f"Meaning: {metadata['meaning']}")
        if metadata.get('grammar_points'):
            parts.append(f"Grammar: {', '.join(metadata['grammar_points'])}")
        return '\n'.join(parts) or f"The sentence has {len(tokens)} words"

    if level == 2:
        if authored.get('level2'):
            return authored['level2']
        if tokens:
            return f"First word: {tokens[0]}"
        return "The sentence starts with its subject"

    if authored.get('level3'):
        return authored['level3']
    if len(tokens) >= 2:
        return f"First half: {''.join(tokens[:max(1, len(tokens) // 2)])}"
    return f"First word: {tokens[0] if tokens else '...'}"


def generate_hint(mode: Mode, level: int, target: str, tokens: list[str],
                  metadata: dict = None) -> str:
    """Build the hint text shown for a level (1-3)."""
    if level not in (1, 2, 3):
        raise ValidationFailed(f"Invalid hint level: {level}")
    metadata = metadata or {}
    if mode is Mode.FIXED_TOKEN:
        return _idiom_hint(level, target, metadata)
    return _sentence_hint(level, tokens, metadata)
