#!/usr/bin/env python3
"""
PPO Training Script with Command Line Interface.

Trains a saber arena agent by self-play against random and frozen-policy
opponents.
"""

import argparse
import os
import sys

# Add project root to path
sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from mimicrl.training.ppo.config import PPOConfig
from mimicrl.training.ppo.logger import configure_logging
from mimicrl.training.ppo.train_ppo import PPOTrainingManager
from mimicrl.training.ppo.utils import format_training_time


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="PPO Self-Play Training for the saber arena"
    )

    parser.add_argument(
        "--max-games", type=int, help="Number of games to train for (overrides config)"
    )

    parser.add_argument(
        "--rollout-length",
        type=int,
        help="Transitions per collector per iteration (overrides config)",
    )

    parser.add_argument(
        "--parallel-rollouts",
        type=int,
        help="Number of concurrent rollout collectors (overrides config)",
    )

    parser.add_argument(
        "--learning-rate", type=float, help="Learning rate (overrides config)"
    )

    parser.add_argument(
        "--hidden-layers",
        type=int,
        nargs="+",
        help="Hidden layer widths for policy and value networks",
    )

    parser.add_argument("--model-dir", type=str, help="Checkpoint directory")

    parser.add_argument(
        "--opponent-pool", type=str, help="JSON file backing the opponent pool"
    )

    parser.add_argument(
        "--chart", type=str, help="Write a progress chart PNG to this path"
    )

    parser.add_argument("--seed", type=int, help="Random seed")

    parser.add_argument(
        "--progress", action="store_true", help="Show rollout and update progress bars"
    )

    parser.add_argument(
        "--quick-test",
        action="store_true",
        help="Run quick test with reduced parameters",
    )

    parser.add_argument(
        "--resume",
        type=str,
        metavar="CHECKPOINT",
        help="Start from the agent stored in this checkpoint",
    )

    parser.add_argument("--log-file", type=str, help="Also write logs to this file")

    parser.add_argument(
        "--verbose", action="store_true", help="Include per-collector debug logs"
    )

    return parser.parse_args()


def create_config_from_args(args) -> PPOConfig:
    """Create PPO configuration from command line arguments."""
    overrides = {}

    if args.max_games:
        overrides["max_games"] = args.max_games

    if args.rollout_length:
        overrides["rollout_max_length"] = args.rollout_length

    if args.parallel_rollouts:
        overrides["num_rollouts"] = args.parallel_rollouts

    if args.learning_rate:
        overrides["learning_rate"] = args.learning_rate

    if args.hidden_layers:
        overrides["policy_hidden_layers"] = args.hidden_layers
        overrides["value_hidden_layers"] = args.hidden_layers

    if args.model_dir:
        overrides["model_dir"] = args.model_dir

    if args.opponent_pool:
        overrides["opponent_pool_path"] = args.opponent_pool

    if args.chart:
        overrides["progress_chart_path"] = args.chart

    if args.seed is not None:
        overrides["seed"] = args.seed

    if args.progress:
        overrides["show_progress"] = True

    return PPOConfig(**overrides)


def main():
    """Main entry point for PPO training."""
    print("Saber Arena PPO Self-Play Training")
    print("=" * 50)

    args = parse_args()
    configure_logging(quiet_rollouts=not args.verbose, log_file=args.log_file)

    try:
        config = create_config_from_args(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}")
        sys.exit(2)

    training_manager = PPOTrainingManager(config, resume_from=args.resume)

    try:
        if args.quick_test:
            results = training_manager.quick_test()
        else:
            results = training_manager.run_training()

        if results.get("success", False):
            print(
                f"\nTraining completed successfully in {format_training_time(results['total_time'])}"
            )
            sys.exit(0)
        else:
            elapsed = results.get("total_time", 0.0)
            print(
                f"\nTraining failed or was interrupted after {format_training_time(elapsed)}"
            )
            if "error" in results:
                print(f"Error: {results['error']}")
            sys.exit(1)

    except KeyboardInterrupt:
        print("\nTraining interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
