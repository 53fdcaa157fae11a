"""Tests for the HTTP API."""

import os
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

import server.app as server_app
from server.app import app

TEST_ENV = {
    'SCRAMBLE_STORAGE': 'memory',
    'SCRAMBLE_ENABLE_SCHEDULER': '0',
}


class ServerTestCase(unittest.TestCase):

    def setUp(self):
        self.env = patch.dict(os.environ, TEST_ENV)
        self.env.start()
        self.client = TestClient(app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        self.env.stop()

    def start(self, player_id='alice', mode='idiom', difficulty='EASY'):
        response = self.client.post('/api/rounds/start', json={
            'player_id': player_id, 'mode': mode, 'difficulty': difficulty
        })
        self.assertEqual(response.status_code, 200)
        return response.json()

    def target_of(self, round_id):
        return server_app.storage.get_round(round_id).target


class TestRoundEndpoints(ServerTestCase):

    def test_root(self):
        data = self.client.get('/').json()
        self.assertEqual(data['max_hints'], 3)
        self.assertIn('fixed_token', data['modes'])

    def test_start_hint_submit(self):
        started = self.start()
        self.assertFalse(started['all_completed'])
        self.assertEqual(started['max_score'], 250)
        self.assertEqual(len(started['scrambled']), 4)

        hint = self.client.post('/api/rounds/hint', json={'player_id': 'alice', 'level': 1})
        self.assertEqual(hint.status_code, 200)
        self.assertEqual(hint.json()['penalty'], 10)
        self.assertEqual(hint.json()['hints_remaining'], 2)

        response = self.client.post('/api/rounds/submit', json={
            'player_id': 'alice',
            'answer': self.target_of(started['round_id']),
            'elapsed_seconds': 12
        })
        self.assertEqual(response.status_code, 200)
        result = response.json()
        self.assertTrue(result['correct'])
        self.assertEqual(result['score'], 240)
        self.assertEqual(result['rank'], 1)
        self.assertEqual(result['breakdown']['hint_penalty'], 10)

    def test_sentence_submit_with_tokens(self):
        started = self.start(mode='sentence')
        tokens = server_app.storage.get_round(started['round_id']).target_tokens
        response = self.client.post('/api/rounds/submit', json={
            'player_id': 'alice', 'answer': tokens, 'elapsed_seconds': 5
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['grammar_score'], 100)

    def test_fourth_hint_conflict(self):
        self.start()
        for level in (1, 2, 3):
            self.client.post('/api/rounds/hint', json={'player_id': 'alice', 'level': level})
        response = self.client.post('/api/rounds/hint', json={'player_id': 'alice', 'level': 3})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['code'], 'HINT_BUDGET_EXCEEDED')

    def test_bad_mode(self):
        response = self.client.post('/api/rounds/start', json={
            'player_id': 'alice', 'mode': 'poem', 'difficulty': 'EASY'
        })
        self.assertEqual(response.status_code, 400)

    def test_submit_without_round(self):
        response = self.client.post('/api/rounds/submit', json={'player_id': 'alice', 'answer': '一心一意'})
        self.assertEqual(response.status_code, 409)

    def test_all_completed_then_restart(self):
        for _ in range(3):
            self.start()
        exhausted = self.start()
        self.assertTrue(exhausted['all_completed'])
        self.assertIsNone(exhausted['round_id'])
        self.assertIn('3', exhausted['message'])

        response = self.client.post('/api/players/alice/restart', json={})
        self.assertEqual(response.status_code, 200)
        self.assertFalse(self.start()['all_completed'])

    def test_active_and_abandon(self):
        self.assertEqual(self.client.get('/api/players/alice/active').status_code, 404)
        started = self.start()
        self.assertEqual(self.client.get('/api/players/alice/active').json()['round_id'],
                         started['round_id'])
        self.assertTrue(self.client.post('/api/rounds/abandon', json={'player_id': 'alice'}).json()['abandoned'])
        self.assertEqual(self.client.get('/api/players/alice/active').status_code, 404)


class TestLeaderboardEndpoints(ServerTestCase):

    def play(self, player_id, elapsed):
        started = self.start(player_id)
        self.client.post('/api/rounds/submit', json={
            'player_id': player_id,
            'answer': self.target_of(started['round_id']),
            'elapsed_seconds': elapsed
        })

    def test_leaderboard_views(self):
        self.play('alice', 10)
        self.play('bob', 100)

        top = self.client.get('/api/leaderboard/idiom/EASY').json()['entries']
        self.assertEqual([e['player_id'] for e in top], ['alice', 'bob'])
        self.assertEqual([e['rank'] for e in top], [1, 2])

        bob = self.client.get('/api/leaderboard/idiom/EASY/players/bob').json()
        self.assertTrue(bob['is_top_ten'])
        self.assertFalse(bob['is_first_place'])
        self.assertEqual(self.client.get('/api/leaderboard/idiom/EASY/players/zoe').status_code, 404)

        near = self.client.get('/api/leaderboard/idiom/EASY/near/1?offset=1').json()['entries']
        self.assertEqual(len(near), 2)

        stats = self.client.get('/api/leaderboard/idiom/EASY/stats').json()
        self.assertEqual(stats['total_players'], 2)
        self.assertEqual(self.client.post('/api/admin/recompute').json()['boards_updated'], 8)

    def test_player_views(self):
        self.play('alice', 10)
        history = self.client.get('/api/players/alice/history').json()['history']
        self.assertEqual(len(history), 1)
        best = self.client.get('/api/players/alice/best', params={'mode': 'idiom', 'difficulty': 'EASY'})
        self.assertEqual(best.json()['score'], 250)
        stats = self.client.get('/api/players/alice/stats').json()
        self.assertEqual(stats['completed'], 1)
        rankings = self.client.get('/api/players/alice/rankings').json()['rankings']
        self.assertEqual(rankings[0]['rank'], 1)

    def test_bad_difficulty(self):
        self.assertEqual(self.client.get('/api/leaderboard/idiom/LEGENDARY').status_code, 400)


class TestUnexpectedErrors(ServerTestCase):

    def test_unexpected_error_returns_json_500(self):
        client = TestClient(app, raise_server_exceptions=False)
        with patch.object(server_app.orchestrator, 'session_statistics',
                          side_effect=RuntimeError("connection reset")):
            response = client.get('/api/players/alice/stats')
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'detail': 'Internal server error',
                                           'code': 'INTERNAL_ERROR'})

    def test_domain_errors_keep_their_status(self):
        response = self.client.post('/api/rounds/hint', json={'player_id': 'alice', 'level': 1})
        self.assertEqual(response.status_code, 409)
        self.assertNotEqual(response.json()['code'], 'INTERNAL_ERROR')


class TestBackgroundTasks(ServerTestCase):

    def test_startup_registers_jobs(self):
        self.assertFalse(server_app.scheduler.is_running)
        for name in ('sweep-stale-rounds', 'recompute-ranks'):
            self.assertIsNotNone(server_app.scheduler.get_job(name))


if __name__ == '__main__':
    unittest.main()
