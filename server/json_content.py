"""Question catalog loaded from JSON files."""

import json
import logging
import os

from scramble.config import CONTENT_CACHE_TTL_SECONDS, IDIOM_CATALOG_FILE, SENTENCE_CATALOG_FILE
from scramble.interfaces import ContentProvider
from scramble.models import Difficulty, Mode, Question
from .cache import ReadThroughCache

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data')


def _idiom_question(item: dict) -> Question:
    idiom = item['idiom']
    metadata = {k: v for k, v in item.items() if k not in ('id', 'idiom', 'difficulty')}
    return Question(item.get('id') or idiom, Mode.FIXED_TOKEN,
                    Difficulty.parse(item['difficulty']), idiom, list(idiom), metadata)


def _sentence_question(item: dict) -> Question:
    target = item['target_sentence']
    words = item['words']
    metadata = {k: v for k, v in item.items()
                if k not in ('id', 'target_sentence', 'words', 'difficulty')}
    return Question(item.get('id') or target, Mode.FREE_COMPOSITION,
                    Difficulty.parse(item['difficulty']), target, words, metadata)


class JsonContentProvider(ContentProvider):
    """Reads `idioms.json` and `sentences.json` through a TTL cache.

    Idiom items: {"idiom", "difficulty", "pinyin", "definition", "meaning", "usage", "origin"}.
    Sentence items: {"target_sentence", "words", "difficulty", "pinyin", "meaning",
    "grammar_points", "hints": {"level2", "level3"}}.
    """

    def __init__(self, content_dir: str = None, ttl_seconds: float = CONTENT_CACHE_TTL_SECONDS):
        self.content_dir = content_dir or DEFAULT_CONTENT_DIR
        self.cache = ReadThroughCache(self._load_file, ttl_seconds)

    def _load_file(self, filename: str) -> list[Question]:
        path = os.path.join(self.content_dir, filename)
        if not os.path.exists(path):
            logger.warning(f"Catalog file not found: {path}")
            return []
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if filename == IDIOM_CATALOG_FILE:
            questions = [_idiom_question(item) for item in data.get('idioms', [])]
        else:
            questions = [_sentence_question(item) for item in data.get('sentences', [])]
        logger.info(f"Loaded {len(questions)} questions from {path}")
        return questions

    def list_questions(self, mode: Mode, difficulty: Difficulty) -> list[Question]:
        filename = IDIOM_CATALOG_FILE if mode is Mode.FIXED_TOKEN else SENTENCE_CATALOG_FILE
        return [q for q in self.cache.get(filename) if q.difficulty is difficulty]

    def reload(self) -> None:
        self.cache.invalidate()
