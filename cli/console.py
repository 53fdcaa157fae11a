"""Console UI for the scramble game."""

import time

import requests

from scramble.config import MAX_HINTS_PER_ROUND
from cli.api_client import ScrambleAPIClient


def _error_detail(e: Exception) -> str:
    if isinstance(e, requests.HTTPError) and e.response is not None:
        try:
            return e.response.json().get('detail', str(e))
        except ValueError:
            pass
    return str(e)


class ConsoleUI:
    """Console user interface for the scramble game."""

    def __init__(self, client: ScrambleAPIClient, mode: str = 'idiom', difficulty: str = 'EASY'):
        self.client = client
        self.mode = mode
        self.difficulty = difficulty

    def print_round(self, data: dict):
        """Print the scrambled tokens of a new round."""
        print('\n' + '=' * 60)
        print(f"{data['mode']} / {data['difficulty']} "
              f"(time limit {data['time_limit_seconds']}s, max score {data['max_score']})")
        print('=' * 60)
        for key, value in data.get('metadata', {}).items():
            print(f'  {key}: {value}')
        print(f"\n>>> {'  '.join(data['scrambled'])}")

    def print_result(self, result: dict):
        """Print evaluation results."""
        print('-' * 40)
        print(f"Your answer: {result['answer']}")
        print(f"Correct answer: {result['correct_answer']}")
        print('Correct!' if result['correct'] else 'Not quite.')
        print(f"Score: {result['score']} (accuracy {result['accuracy']:.0%})")
        if result.get('grammar_score') is not None:
            print(f"Grammar: {result['grammar_score']}/100")
        for diagnostic in result.get('diagnostics', []):
            print(f"  - {diagnostic['type']}: {diagnostic['message']}")
        breakdown = result['breakdown']
        print(f"  base {breakdown['base_points']} + time {breakdown['time_bonus']} "
              f"+ accuracy {breakdown['accuracy_bonus']} + grammar {breakdown['grammar_bonus']} "
              f"- hints {breakdown['hint_penalty']} x{breakdown['multiplier']}")
        if result.get('rank'):
            print(f"Leaderboard rank: {result['rank']}")
        print('-' * 40)

    def print_stats(self, stats: dict):
        print('\n' + '=' * 50)
        print('SESSION SUMMARY')
        print('=' * 50)
        print(f"Rounds played: {stats['total']}")
        print(f"Completed: {stats['completed']}  Abandoned: {stats['abandoned']}  "
              f"Expired: {stats['expired']}")
        print(f"Completion rate: {stats['completion_rate']:.1f}%")
        print('=' * 50 + '\n')

    def print_leaderboard(self, board: dict):
        print(f'\nTop players ({self.mode} / {self.difficulty}):')
        for entry in board['entries']:
            print(f"  #{entry['rank']}  {entry['player_id']:<20} {entry['total_score']:>8} "
                  f"({entry['games_played']} games)")
        print()

    def play_round(self) -> bool:
        """Play one round. Returns False when the player wants to quit."""
        data = self.client.start_round(self.mode, self.difficulty)
        if data['all_completed']:
            print(f"\n{data['message']}")
            answer = input('Start over? [y/N] ').strip().lower()
            if answer == 'y':
                self.client.restart(self.mode, self.difficulty)
                return True
            return False

        self.print_round(data)
        started = time.monotonic()
        next_level = 1

        while True:
            user_input = input('==> ').strip()

            if user_input.lower() == 'exit':
                self.client.abandon_round()
                print('Goodbye!')
                return False

            elif user_input.lower() == 'hint':
                if next_level > MAX_HINTS_PER_ROUND:
                    print('No hints left.')
                    continue
                try:
                    hint = self.client.get_hint(next_level, data['round_id'])
                    print(f"\n--- HINT {hint['level']} (-{hint['penalty']}) ---\n{hint['content']}")
                    print(f"({hint['hints_remaining']} hints left)")
                    next_level += 1
                except Exception as e:
                    print(f"Error getting hint: {_error_detail(e)}")

            elif user_input.lower() == 'stats':
                self.print_stats(self.client.get_stats())

            elif user_input.lower() == 'top':
                self.print_leaderboard(self.client.get_leaderboard(self.mode, self.difficulty))

            elif user_input.lower() == 'skip':
                self.client.abandon_round()
                return True

            elif user_input == '':
                print(f"\n>>> {'  '.join(data['scrambled'])}")

            else:
                answer = user_input.split() if ' ' in user_input else user_input
                try:
                    result = self.client.submit_answer(answer, time.monotonic() - started,
                                                       data['round_id'])
                    self.print_result(result)
                except Exception as e:
                    print(f"Error submitting answer: {_error_detail(e)}")
                return True

    def run(self):
        """Run the main application loop."""
        try:
            self.client.health_check()
            print(f"Connected to scramble server at {self.client.base_url}")
        except Exception:
            print(f"Error: Cannot connect to server at {self.client.base_url}")
            print("Make sure the server is running: python run_server.py")
            return

        print(f'\nPlaying {self.mode} rounds at {self.difficulty} difficulty.')
        print('Type the answer (separate sentence words with spaces).')
        print('Commands: "hint", "skip", "stats", "top", "exit"\n')

        while True:
            try:
                if not self.play_round():
                    return
            except Exception as e:
                print(f"Error: {_error_detail(e)}")
                return
