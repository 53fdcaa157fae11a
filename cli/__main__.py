"""Entry point for the scramble CLI client."""

import argparse
import sys

from cli.api_client import ScrambleAPIClient
from cli.console import ConsoleUI


def main():
    parser = argparse.ArgumentParser(description='Scramble - Chinese idiom and sentence practice')
    parser.add_argument(
        '--server',
        default='http://localhost:8000',
        help='Server URL (default: http://localhost:8000)'
    )
    parser.add_argument(
        '--player',
        default='default',
        help='Player ID (default: default)'
    )
    parser.add_argument(
        '--mode',
        default='idiom',
        choices=['idiom', 'sentence'],
        help='Game mode (default: idiom)'
    )
    parser.add_argument(
        '--difficulty',
        default='EASY',
        type=str.upper,
        choices=['EASY', 'MEDIUM', 'HARD', 'EXPERT'],
        help='Difficulty (default: EASY)'
    )
    args = parser.parse_args()

    client = ScrambleAPIClient(base_url=args.server, player_id=args.player)
    ui = ConsoleUI(client, args.mode, args.difficulty)

    try:
        ui.run()
    except KeyboardInterrupt:
        print('\nGoodbye!')
        sys.exit(0)


if __name__ == '__main__':
    main()
