"""Unit tests for the scramble core modules."""

import random
import unittest
from datetime import datetime, timezone

from scramble.errors import ValidationFailed
from scramble.hints import generate_hint
from scramble.history import SeenQuestionStore
from scramble.models import (
    Difficulty, HintRecord, LeaderboardEntry, Mode, Question, Round, RoundStatus, ScoreRecord
)
from scramble.scoring import (
    accuracy_bonus, calculate_score, cumulative_hint_penalty, grammar_bonus,
    hint_penalty_for_level, max_score, score_breakdown, time_bonus
)
from scramble.scrambler import scramble
from scramble.selector import ContentSelector, Exhausted, Selected
from scramble.utils import (
    is_valid_chinese_text, levenshtein_distance, levenshtein_similarity, segment_sentence
)
from scramble.validation import AnswerValidator, validate_idiom, validate_sentence

from tests.mocks import MockContentProvider, idiom, sample_catalog


class IdentityRng:
    """Random source whose swaps never move anything."""

    def __init__(self):
        self.calls = 0

    def randint(self, a, b):
        self.calls += 1
        return b


# ============================================================================
# Models
# ============================================================================

class TestModeAndDifficulty(unittest.TestCase):

    def test_mode_aliases(self):
        self.assertIs(Mode.parse('idiom'), Mode.FIXED_TOKEN)
        self.assertIs(Mode.parse('SENTENCE'), Mode.FREE_COMPOSITION)
        self.assertIs(Mode.parse('free-composition'), Mode.FREE_COMPOSITION)
        self.assertIs(Mode.parse(Mode.FIXED_TOKEN), Mode.FIXED_TOKEN)

    def test_unknown_mode_raises(self):
        with self.assertRaises(ValidationFailed):
            Mode.parse('crossword')

    def test_difficulty_tables(self):
        self.assertIs(Difficulty.parse('hard'), Difficulty.HARD)
        self.assertEqual([d.base_points for d in Difficulty], [100, 200, 300, 500])
        self.assertEqual([d.multiplier for d in Difficulty], [1.0, 1.2, 1.5, 2.0])
        self.assertEqual([d.time_limit_seconds for d in Difficulty], [180, 120, 90, 60])

    def test_unknown_difficulty_raises(self):
        with self.assertRaises(ValidationFailed):
            Difficulty.parse('impossible')


class TestQuestion(unittest.TestCase):

    def test_idiom_tokens_default_to_characters(self):
        q = Question('q', Mode.FIXED_TOKEN, Difficulty.EASY, '一心一意')
        self.assertEqual(q.tokens, ['一', '心', '一', '意'])

    def test_from_dict(self):
        q = Question.from_dict({
            'id': 's', 'mode': 'sentence', 'difficulty': 'EASY',
            'target': '我喜欢苹果', 'tokens': ['我', '喜欢', '苹果'], 'metadata': {'meaning': 'x'}
        })
        self.assertIs(q.mode, Mode.FREE_COMPOSITION)
        self.assertEqual(q.tokens, ['我', '喜欢', '苹果'])
        self.assertEqual(q.to_dict()['metadata'], {'meaning': 'x'})


class TestRound(unittest.TestCase):

    def setUp(self):
        self.started = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.round = Round('r1', 'alice', Mode.FIXED_TOKEN, Difficulty.EASY, 'i1',
                           '一心一意', list('一心一意'), list('意一心一'), self.started)

    def test_new_round_is_active(self):
        self.assertTrue(self.round.is_active)
        self.assertEqual(self.round.hint_count, 0)
        self.assertEqual(self.round.hints_remaining, 3)
        self.assertEqual(self.round.last_hint_level, 0)

    def test_duration(self):
        later = datetime(2024, 1, 1, 12, 0, 45, tzinfo=timezone.utc)
        self.assertEqual(self.round.duration_seconds(later), 45.0)
        self.round.completed_at = later
        self.assertEqual(self.round.duration_seconds(), 45.0)

    def test_round_trip_with_hints(self):
        self.round.hints.append(HintRecord(1, 10, 'Meaning', self.started))
        self.round.status = RoundStatus.COMPLETED
        self.round.final_score = 240
        restored = Round.from_dict(self.round.to_dict())
        self.assertEqual(restored.status, RoundStatus.COMPLETED)
        self.assertEqual(restored.final_score, 240)
        self.assertEqual(restored.hints[0].level, 1)
        self.assertEqual(restored.hints[0].used_at, self.started)
        self.assertEqual(restored.scrambled, list('意一心一'))


class TestScoreRecord(unittest.TestCase):

    def test_round_trip(self):
        record = ScoreRecord(
            round_id='r1', player_id='alice', mode=Mode.FREE_COMPOSITION,
            difficulty=Difficulty.MEDIUM, question_id='s1', answer='我喜欢苹果', score=300,
            elapsed_seconds=12.5, accuracy=1.0, hints_used=0, correct=True,
            recorded_at=datetime(2024, 1, 1, tzinfo=timezone.utc), grammar_score=100,
            similarity=1.0, diagnostics=({'type': 'WORD_ORDER', 'message': 'm', 'position': -1},)
        )
        self.assertEqual(ScoreRecord.from_dict(record.to_dict()), record)


class TestLeaderboardEntry(unittest.TestCase):

    def test_apply_game_keeps_running_means(self):
        at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        entry = LeaderboardEntry('alice', Mode.FIXED_TOKEN, Difficulty.EASY)
        entry.apply_game(100, 1.0, at)
        entry.apply_game(200, 0.5, at)
        self.assertEqual(entry.games_played, 2)
        self.assertEqual(entry.total_score, 300)
        self.assertEqual(entry.average_score, 150)
        self.assertAlmostEqual(entry.accuracy, 0.75)
        self.assertEqual(entry.last_updated, at)

    def test_rank_flags(self):
        entry = LeaderboardEntry('alice', Mode.FIXED_TOKEN, Difficulty.EASY, rank=1)
        self.assertTrue(entry.is_first_place)
        self.assertTrue(entry.is_top_ten)
        entry.rank = 11
        self.assertFalse(entry.is_top_ten)
        entry.rank = None
        self.assertFalse(entry.is_top_ten)


# ============================================================================
# Text utilities
# ============================================================================

class TestTextUtils(unittest.TestCase):

    def test_segment_on_punctuation_and_spaces(self):
        self.assertEqual(segment_sentence('我 喜欢，苹果。'), ['我', '喜欢', '苹果'])
        self.assertEqual(segment_sentence(''), [])

    def test_valid_chinese_text(self):
        self.assertTrue(is_valid_chinese_text('我喜欢苹果'))
        self.assertTrue(is_valid_chinese_text('你好！ 世界。'))

    def test_digits_and_latin_rejected(self):
        self.assertFalse(is_valid_chinese_text('我喜欢apple'))
        self.assertFalse(is_valid_chinese_text('我有3个'))
        self.assertFalse(is_valid_chinese_text('我有３个'))
        self.assertFalse(is_valid_chinese_text('我喜欢ａｂ'))
        self.assertFalse(is_valid_chinese_text('我@你'))

    def test_levenshtein(self):
        self.assertEqual(levenshtein_distance('kitten', 'sitting'), 3)
        self.assertEqual(levenshtein_distance('', 'abc'), 3)

    def test_similarity_identity_and_symmetry(self):
        self.assertEqual(levenshtein_similarity('', ''), 1.0)
        self.assertEqual(levenshtein_similarity('一心一意', '一心一意'), 1.0)
        self.assertEqual(levenshtein_similarity('abc', ''), 0.0)
        self.assertEqual(levenshtein_similarity('kitten', 'sitting'),
                         levenshtein_similarity('sitting', 'kitten'))
        self.assertAlmostEqual(levenshtein_similarity('kitten', 'sitting'), 1 - 3 / 7)


# ============================================================================
# Scrambling
# ============================================================================

class TestScramble(unittest.TestCase):

    def test_result_is_permutation_that_differs(self):
        rng = random.Random(7)
        tokens = list('一心一意')
        for _ in range(50):
            result = scramble(tokens, rng)
            self.assertEqual(sorted(result), sorted(tokens))
        self.assertEqual(tokens, list('一心一意'))

    def test_distinct_tokens_differ(self):
        rng = random.Random(3)
        tokens = ['我', '喜欢', '苹果', '和', '香蕉']
        for _ in range(50):
            self.assertNotEqual(scramble(tokens, rng), tokens)

    def test_gives_up_after_three_attempts(self):
        rng = IdentityRng()
        result = scramble(['a', 'b', 'c', 'd'], rng)
        self.assertEqual(result, ['a', 'b', 'c', 'd'])
        self.assertEqual(rng.calls, 9)

    def test_short_input_returned_as_copy(self):
        tokens = ['一']
        result = scramble(tokens)
        self.assertEqual(result, tokens)
        self.assertIsNot(result, tokens)
        self.assertEqual(scramble([]), [])


# ============================================================================
# Question history and selection
# ============================================================================

class TestSeenQuestionStore(unittest.TestCase):

    def setUp(self):
        self.store = SeenQuestionStore(capacity=3)
        self.key = ('alice', Mode.FIXED_TOKEN, Difficulty.EASY)

    def test_evicts_oldest(self):
        for qid in ['q1', 'q2', 'q3', 'q4']:
            self.store.add(*self.key, qid)
        self.assertEqual(self.store.excluded(*self.key), {'q2', 'q3', 'q4'})
        self.assertEqual(self.store.size(*self.key), 3)

    def test_readding_refreshes_position(self):
        for qid in ['q1', 'q2', 'q3', 'q1', 'q4']:
            self.store.add(*self.key, qid)
        self.assertTrue(self.store.was_seen(*self.key, 'q1'))
        self.assertFalse(self.store.was_seen(*self.key, 'q2'))

    def test_keys_are_independent(self):
        self.store.add(*self.key, 'q1')
        self.assertEqual(self.store.excluded('bob', Mode.FIXED_TOKEN, Difficulty.EASY), set())
        self.assertEqual(self.store.excluded('alice', Mode.FIXED_TOKEN, Difficulty.HARD), set())

    def test_clear_by_mode(self):
        self.store.add('alice', Mode.FIXED_TOKEN, Difficulty.EASY, 'q1')
        self.store.add('alice', Mode.FIXED_TOKEN, Difficulty.HARD, 'q2')
        self.store.add('alice', Mode.FREE_COMPOSITION, Difficulty.EASY, 's1')
        self.assertEqual(self.store.clear('alice', Mode.FIXED_TOKEN), 2)
        self.assertEqual(self.store.size('alice', Mode.FREE_COMPOSITION, Difficulty.EASY), 1)

    def test_statistics(self):
        self.store.add('alice', Mode.FIXED_TOKEN, Difficulty.EASY, 'q1')
        self.store.add('bob', Mode.FIXED_TOKEN, Difficulty.EASY, 'q1')
        self.store.add('bob', Mode.FIXED_TOKEN, Difficulty.EASY, 'q2')
        stats = self.store.statistics()
        self.assertEqual(stats['total_players'], 2)
        self.assertEqual(stats['total_questions_tracked'], 3)
        self.store.clear_all()
        self.assertEqual(self.store.statistics()['total_entries'], 0)

    def test_capacity_must_be_positive(self):
        with self.assertRaises(ValueError):
            SeenQuestionStore(capacity=0)


class TestContentSelector(unittest.TestCase):

    def setUp(self):
        self.selector = ContentSelector(sample_catalog(), rng=random.Random(1))

    def test_exhausts_pool_then_restarts(self):
        picked = set()
        for _ in range(3):
            result = self.selector.select('alice', Mode.FIXED_TOKEN, Difficulty.EASY)
            self.assertIsInstance(result, Selected)
            picked.add(result.question.id)
        self.assertEqual(picked, {'i1', 'i2', 'i3'})

        result = self.selector.select('alice', Mode.FIXED_TOKEN, Difficulty.EASY)
        self.assertIsInstance(result, Exhausted)
        self.assertEqual(result.pool_size, 3)
        self.assertIn('3', result.message)

        self.selector.restart('alice', Mode.FIXED_TOKEN, Difficulty.EASY)
        self.assertIsInstance(self.selector.select('alice', Mode.FIXED_TOKEN, Difficulty.EASY), Selected)

    def test_other_players_unaffected(self):
        for _ in range(3):
            self.selector.select('alice', Mode.FIXED_TOKEN, Difficulty.EASY)
        self.assertIsInstance(self.selector.select('bob', Mode.FIXED_TOKEN, Difficulty.EASY), Selected)

    def test_empty_catalog_is_exhausted(self):
        result = self.selector.select('alice', Mode.FREE_COMPOSITION, Difficulty.EXPERT)
        self.assertIsInstance(result, Exhausted)
        self.assertEqual(result.pool_size, 0)

    def test_no_repeat_uses_larger_history(self):
        catalog = MockContentProvider([idiom(f'q{i}', '一心一意') for i in range(12)])
        selector = ContentSelector(catalog, no_repeat=True, rng=random.Random(2))
        for _ in range(12):
            self.assertIsInstance(selector.select('alice', Mode.FIXED_TOKEN, Difficulty.EASY), Selected)
        self.assertIsInstance(selector.select('alice', Mode.FIXED_TOKEN, Difficulty.EASY), Exhausted)

    def test_default_history_bound_recycles_old_questions(self):
        catalog = MockContentProvider([idiom(f'q{i}', '一心一意') for i in range(12)])
        selector = ContentSelector(catalog, rng=random.Random(2))
        for _ in range(30):
            self.assertIsInstance(selector.select('alice', Mode.FIXED_TOKEN, Difficulty.EASY), Selected)


# ============================================================================
# Validation
# ============================================================================

class TestIdiomValidation(unittest.TestCase):

    def test_exact_match(self):
        result = validate_idiom('一心一意', '一心一意')
        self.assertTrue(result.correct)
        self.assertEqual(result.accuracy, 1.0)
        self.assertIsNone(result.grammar_score)

    def test_wrong_order_reports_similarity(self):
        result = validate_idiom('一意一心', '一心一意')
        self.assertFalse(result.correct)
        self.assertEqual(result.accuracy, 0.5)


class TestSentenceValidation(unittest.TestCase):

    target_tokens = ['我', '喜欢', '苹果']
    target = '我喜欢苹果'

    def test_exact_match_accepted(self):
        result = validate_sentence('我喜欢苹果', self.target, self.target_tokens)
        self.assertTrue(result.correct)
        self.assertEqual(result.grammar_score, 100)
        self.assertEqual(result.similarity, 1.0)
        self.assertEqual(result.diagnostics, [])

    def test_wrong_order_scores_sixty(self):
        result = AnswerValidator().validate(Mode.FREE_COMPOSITION, ['我', '苹果', '喜欢'],
                                            self.target, self.target_tokens)
        self.assertFalse(result.correct)
        self.assertEqual(result.grammar_score, 60)
        self.assertEqual([d.type for d in result.diagnostics], ['WORD_ORDER'])

    def test_extra_and_missing_words(self):
        result = validate_sentence('我 喜欢 香蕉', self.target, self.target_tokens)
        types = sorted(d.type for d in result.diagnostics)
        self.assertEqual(types, ['EXTRA_WORD', 'MISSING_WORD', 'WORD_ORDER'])
        self.assertEqual(result.grammar_score, 100 - 5 - 10 - 20)
        extra = [d for d in result.diagnostics if d.type == 'EXTRA_WORD'][0]
        self.assertEqual(extra.position, 2)
        self.assertFalse(result.correct)

    def test_missing_word_only(self):
        result = AnswerValidator().validate(Mode.FREE_COMPOSITION, ['我', '喜欢'],
                                            self.target, self.target_tokens)
        self.assertEqual(result.grammar_score, 90)
        self.assertEqual([d.type for d in result.diagnostics], ['MISSING_WORD'])
        self.assertFalse(result.correct)

    def test_invalid_characters(self):
        result = validate_sentence('我喜欢apple', self.target, self.target_tokens)
        self.assertFalse(result.correct)
        self.assertEqual(result.grammar_score, 0)
        self.assertEqual(result.accuracy, 0.0)
        self.assertEqual(len(result.diagnostics), 1)
        self.assertEqual(result.diagnostics[0].type, 'INVALID_CHARACTERS')

    def test_spaced_answer_accepted(self):
        result = validate_sentence('我 喜欢 苹果', self.target, self.target_tokens)
        self.assertTrue(result.correct)
        self.assertEqual(result.grammar_score, 100)
        self.assertLess(result.similarity, 1.0)
        self.assertAlmostEqual(result.accuracy, (1.0 + result.similarity) / 2)

    def test_grammar_clamped_at_zero(self):
        tokens = ['我', '每天', '早上', '在', '公园', '跑步']
        result = validate_sentence('跑步 公园 在 早上 每天 我', ''.join(tokens), tokens)
        self.assertEqual(result.grammar_score, 0)

    def test_idiom_mode_dispatch(self):
        result = AnswerValidator().validate(Mode.FIXED_TOKEN, list('一心一意'), '一心一意',
                                            list('一心一意'))
        self.assertTrue(result.correct)


# ============================================================================
# Scoring
# ============================================================================

class TestScoring(unittest.TestCase):

    def test_easy_perfect_fast(self):
        self.assertEqual(calculate_score(Difficulty.EASY, 10, 1.0, 0), 250)

    def test_expert_with_one_hint(self):
        self.assertEqual(calculate_score(Difficulty.EXPERT, 45, 1.0, 1), 1240)

    def test_multiplier_floors(self):
        # (300 + 15) * 1.5 = 472.5
        self.assertEqual(calculate_score(Difficulty.HARD, 80, 0.5, 0), 472)

    def test_medium_with_all_hints(self):
        self.assertEqual(calculate_score(Difficulty.MEDIUM, 100, 0.5, 3), 168)

    def test_grammar_bonus_included(self):
        self.assertEqual(calculate_score(Difficulty.EASY, 10, 1.0, 0, grammar_score=100), 300)

    def test_time_bonus_tiers(self):
        self.assertEqual(time_bonus(29.99), 50)
        self.assertEqual(time_bonus(30), 30)
        self.assertEqual(time_bonus(60), 15)
        self.assertEqual(time_bonus(90), 0)

    def test_accuracy_bonus_tiers(self):
        self.assertEqual(accuracy_bonus(1.0), 100)
        self.assertEqual(accuracy_bonus(0.95), 50)
        self.assertEqual(accuracy_bonus(0.9), 25)
        self.assertEqual(accuracy_bonus(0.899), 0)

    def test_grammar_bonus_tiers(self):
        self.assertEqual(grammar_bonus(None), 0)
        self.assertEqual(grammar_bonus(95), 50)
        self.assertEqual(grammar_bonus(85), 25)
        self.assertEqual(grammar_bonus(75), 10)
        self.assertEqual(grammar_bonus(74), 0)

    def test_hint_penalty_schedule_is_cumulative(self):
        self.assertEqual([cumulative_hint_penalty(h) for h in range(4)], [0, 10, 30, 60])
        self.assertEqual(cumulative_hint_penalty(7), 60)
        self.assertEqual([hint_penalty_for_level(level) for level in (1, 2, 3)], [10, 20, 30])

    def test_invalid_hint_level(self):
        with self.assertRaises(ValidationFailed):
            hint_penalty_for_level(4)

    def test_breakdown(self):
        breakdown = score_breakdown(Difficulty.EXPERT, 45, 1.0, 1)
        self.assertEqual(breakdown.raw_score, 620)
        self.assertEqual(breakdown.final_score, 1240)
        self.assertEqual(breakdown.to_dict()['hint_penalty'], 10)

    def test_max_score(self):
        self.assertEqual(max_score(Difficulty.EASY), 250)
        self.assertEqual(max_score(Difficulty.EXPERT), 1300)
        self.assertEqual(max_score(Difficulty.EASY, with_grammar=True), 300)


# ============================================================================
# Hints
# ============================================================================

class TestHints(unittest.TestCase):

    def test_idiom_levels(self):
        metadata = {'definition': '心思专一', 'meaning': 'wholeheartedly', 'pinyin': 'yī xīn yī yì',
                    'usage': '他一心一意地学习。'}
        level1 = generate_hint(Mode.FIXED_TOKEN, 1, '一心一意', list('一心一意'), metadata)
        self.assertIn('心思专一', level1)
        self.assertIn('wholeheartedly', level1)
        level2 = generate_hint(Mode.FIXED_TOKEN, 2, '一心一意', list('一心一意'), metadata)
        self.assertIn('一', level2)
        self.assertIn('yī', level2)
        self.assertNotIn('xīn', level2)
        level3 = generate_hint(Mode.FIXED_TOKEN, 3, '一心一意', list('一心一意'), metadata)
        self.assertIn('他一心一意地学习。', level3)

    def test_idiom_fallbacks(self):
        self.assertEqual(generate_hint(Mode.FIXED_TOKEN, 1, '一心一意', [], {}), 'This is a common idiom')
        self.assertIn('4 characters', generate_hint(Mode.FIXED_TOKEN, 3, '一心一意', [], None))
        self.assertIn('三国志', generate_hint(Mode.FIXED_TOKEN, 3, '一心一意', [], {'origin': '三国志'}))

    def test_sentence_levels(self):
        tokens = ['他', '每天', '早上', '跑步']
        metadata = {'meaning': 'He runs every morning', 'grammar_points': ['时间状语']}
        level1 = generate_hint(Mode.FREE_COMPOSITION, 1, '', tokens, metadata)
        self.assertIn('He runs every morning', level1)
        self.assertIn('时间状语', level1)
        self.assertIn('他', generate_hint(Mode.FREE_COMPOSITION, 2, '', tokens, metadata))
        self.assertIn('他每天', generate_hint(Mode.FREE_COMPOSITION, 3, '', tokens, metadata))

    def test_sentence_authored_hints_win(self):
        metadata = {'hints': {'level2': 'starts with 我', 'level3': '我喜欢……'}}
        tokens = ['我', '喜欢', '苹果']
        self.assertEqual(generate_hint(Mode.FREE_COMPOSITION, 2, '', tokens, metadata), 'starts with 我')
        self.assertEqual(generate_hint(Mode.FREE_COMPOSITION, 3, '', tokens, metadata), '我喜欢……')
        self.assertIn('3 words', generate_hint(Mode.FREE_COMPOSITION, 1, '', tokens, metadata))

    def test_invalid_level(self):
        with self.assertRaises(ValidationFailed):
            generate_hint(Mode.FIXED_TOKEN, 0, '一心一意', [], {})


if __name__ == '__main__':
    unittest.main()
