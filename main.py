#!/usr/bin/env python3
"""
Saber Arena match runner.

Plays headless matches between a saved policy (or a random controller) and a
random opponent and prints the results.
"""

import argparse
from collections import Counter
from typing import Optional

from mimicrl.core.controllers import (PlayerController, PolicyController,
                                      RandomController)
from mimicrl.core.game_core import Outcome
from mimicrl.game.saber_arena import SaberArenaGame
from mimicrl.model.model_loader import ModelLoader

DELTA_TIME = 0.05
ACTION_INTERVAL_TICKS = 4  # 0.2s per decision


def create_player(
    game: SaberArenaGame, model_path: Optional[str], seed: Optional[int]
) -> PlayerController:
    if model_path is None:
        return RandomController(game.get_action_spaces(), seed=seed)

    agent = ModelLoader(model_path).load_agent(game.get_action_spaces())
    agent.set_deterministic(True)
    agent.activate()
    return PolicyController(agent)


def play_match(game: SaberArenaGame, players, verbose: bool = False) -> Outcome:
    """Play one episode; return the outcome for seat 0."""
    state = game.reset()
    decisions = 0
    while not state.done:
        actions = [p.decide(obs) for p, obs in zip(players, state.observations)]
        for _ in range(ACTION_INTERVAL_TICKS):
            state = game.step(actions, DELTA_TIME)
            if state.done:
                break
        decisions += 1

    if verbose:
        print(
            f"  {state.outcome[0].value:<4} after {decisions} decisions "
            f"({state.info.get('elapsed_time', 0.0):.1f}s)"
        )
    return state.outcome[0]


def main():
    parser = argparse.ArgumentParser(description="Saber Arena headless matches")
    parser.add_argument("--model", type=str, help="Checkpoint for seat 0 (random if omitted)")
    parser.add_argument("--games", type=int, default=10, help="Number of matches")
    parser.add_argument("--seed", type=int, default=1337, help="Random seed")
    parser.add_argument("--verbose", action="store_true", help="Print every match")
    args = parser.parse_args()

    game = SaberArenaGame(seed=args.seed)
    players = [
        create_player(game, args.model, args.seed),
        RandomController(game.get_action_spaces(), seed=args.seed + 1),
    ]

    print(f"Playing {args.games} matches...")
    results = Counter(
        play_match(game, players, verbose=args.verbose) for _ in range(args.games)
    )

    print(
        f"Wins: {results[Outcome.WIN]}  Losses: {results[Outcome.LOSS]}  "
        f"Ties: {results[Outcome.TIE]}"
    )


if __name__ == "__main__":
    main()
