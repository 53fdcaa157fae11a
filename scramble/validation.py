"""Answer validation for idiom and sentence rounds."""

import logging
from dataclasses import dataclass, field

from .config import (
    EXTRA_WORD_PENALTY, GRAMMAR_FULL_SCORE, MISSING_WORD_PENALTY, WORD_ORDER_PENALTY
)
from .models import Mode
from .utils import is_valid_chinese_text, levenshtein_similarity, segment_sentence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Diagnostic:
    type: str
    message: str
    position: int = -1

    def to_dict(self) -> dict:
        return {'type': self.type, 'message': self.message, 'position': self.position}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of checking one answer.

    `accuracy` feeds the score calculator. For sentence rounds it is the mean
    of grammar_score/100 and similarity; for idioms it is the similarity.
    """

    correct: bool
    accuracy: float
    similarity: float
    grammar_score: int | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def is_perfect(self) -> bool:
        if self.grammar_score is None:
            return self.correct and self.similarity == 1.0
        return self.grammar_score == GRAMMAR_FULL_SCORE and self.similarity == 1.0


def validate_idiom(answer: str, target: str) -> ValidationResult:
    """Exact match decides correctness; similarity is reported as accuracy."""
    correct = answer == target
    similarity = levenshtein_similarity(answer, target)
    logger.debug(f"Idiom validation: answer={answer!r}, target={target!r}, "
                 f"correct={correct}, accuracy={similarity:.3f}")
    return ValidationResult(correct=correct, accuracy=similarity, similarity=similarity)


def count_order_errors(answer_tokens: list[str], target_tokens: list[str]) -> int:
    """Positions (up to the shorter length) where the tokens differ."""
    return sum(1 for a, t in zip(answer_tokens, target_tokens) if a != t)


def validate_sentence(answer: str, target: str, target_tokens: list[str],
                      allowed_tokens: list[str] = None,
                      answer_tokens: list[str] = None) -> ValidationResult:
    """Grade a sentence on character set, word set and word order.

    Args:
        answer: Submitted sentence text.
        target: Target sentence text.
        target_tokens: Target words in order.
        allowed_tokens: Words the player may use. Defaults to target_tokens.
        answer_tokens: Pre-segmented answer. Segmented from `answer` if omitted.

    Accepted only with a full grammar score and no diagnostics.
    """
    if answer == target:
        return ValidationResult(correct=True, accuracy=1.0, similarity=1.0,
                                grammar_score=GRAMMAR_FULL_SCORE)

    if not is_valid_chinese_text(answer):
        logger.debug(f"Invalid characters in answer: {answer!r}")
        return ValidationResult(
            correct=False, accuracy=0.0, similarity=0.0, grammar_score=0,
            diagnostics=[Diagnostic('INVALID_CHARACTERS',
                                    'Answer contains invalid characters (digits, letters or symbols)')]
        )

    words = answer_tokens if answer_tokens is not None else segment_sentence(answer)
    words = [w for w in words if w]
    allowed = set(allowed_tokens if allowed_tokens is not None else target_tokens)
    diagnostics = []
    grammar = GRAMMAR_FULL_SCORE

    for position, word in enumerate(words):
        if word not in allowed:
            diagnostics.append(Diagnostic('EXTRA_WORD', f"Word not allowed: {word}", position))
            grammar -= EXTRA_WORD_PENALTY

    present = set(words)
    for word in target_tokens:
        if word not in present:
            diagnostics.append(Diagnostic('MISSING_WORD', f"Required word missing: {word}"))
            grammar -= MISSING_WORD_PENALTY

    order_errors = count_order_errors(words, target_tokens)
    if order_errors:
        diagnostics.append(Diagnostic('WORD_ORDER', f"{order_errors} words out of position"))
        grammar -= order_errors * WORD_ORDER_PENALTY

    grammar = max(0, min(GRAMMAR_FULL_SCORE, grammar))
    similarity = levenshtein_similarity(answer, target)
    accuracy = (grammar / GRAMMAR_FULL_SCORE + similarity) / 2.0
    correct = grammar == GRAMMAR_FULL_SCORE and not diagnostics

    logger.debug(f"Sentence validation: correct={correct}, grammar={grammar}, "
                 f"similarity={similarity:.3f}, diagnostics={len(diagnostics)}")
    return ValidationResult(correct=correct, accuracy=accuracy, similarity=similarity,
                            grammar_score=grammar, diagnostics=diagnostics)


class AnswerValidator:
    """Chooses the validation policy for a round's mode."""

    def validate(self, mode: Mode, answer, target: str, target_tokens: list[str],
                 allowed_tokens: list[str] = None) -> ValidationResult:
        """Validate a submitted answer, given as text or as an ordered token list."""
        if isinstance(answer, (list, tuple)):
            answer_tokens = [str(t) for t in answer]
            text = ''.join(answer_tokens)
        else:
            answer_tokens = None
            text = answer or ''

        if mode is Mode.FIXED_TOKEN:
            return validate_idiom(text, target)
        return validate_sentence(text, target, target_tokens, allowed_tokens, answer_tokens)
