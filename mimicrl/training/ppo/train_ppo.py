"""
Main PPO training script.

Runs a complete self-play training session on the saber arena until the game
budget is spent, then writes the final checkpoint and an optional progress
chart.
"""

import asyncio
import time
import traceback
from dataclasses import replace
from typing import Any, Dict, Optional

from mimicrl.game.saber_arena import SaberArenaGame
from mimicrl.model.model_loader import ModelLoader
from mimicrl.model.model_saver import ModelSaver

from .config import PPOConfig
from .training_session import TrainingSession
from .utils import format_training_time, print_training_header, validate_config


class PPOTrainingManager:
    """Manages the complete PPO training process."""

    def __init__(self, config: PPOConfig, resume_from: Optional[str] = None):
        self.config = config
        self.resume_from = resume_from
        self.session: Optional[TrainingSession] = None

    def _game_factory(self):
        seed_counter = [self.config.seed]

        def factory() -> SaberArenaGame:
            seed = seed_counter[0]
            if seed is not None:
                seed_counter[0] = seed + 1
            return SaberArenaGame(seed=seed)

        return factory

    def run_training(self) -> Dict[str, Any]:
        """Run the complete PPO training process.

        Returns:
            Dictionary with training results and statistics
        """
        start_time = time.time()

        try:
            print("Validating configuration...")
            issues = validate_config(self.config)
            if issues:
                print("Configuration validation failed:")
                for issue in issues:
                    print(f"  - {issue}")
                return {"error": "Configuration validation failed", "issues": issues}

            print_training_header(self.config)

            print("Initializing training session...")
            self.session = TrainingSession(
                game_core_factory=self._game_factory(),
                config=self.config,
                model_saver=ModelSaver(self.config.model_dir),
            )
            self.session.initialize()

            if self.resume_from:
                print(f"Resuming from checkpoint {self.resume_from}...")
                loader = ModelLoader(self.resume_from)
                self.session.import_agent_weights(loader.get_bundle())

            print("\nStarting PPO training...")
            metrics = asyncio.run(self.session.run())

            total_time = time.time() - start_time
            print("\nPPO Training completed successfully!")
            print(f"Total training time: {format_training_time(total_time)}")

            chart_path = None
            if self.config.progress_chart_path:
                from mimicrl.visualization.progress_chart import plot_training_progress

                chart_path = str(
                    plot_training_progress(metrics, self.config.progress_chart_path)
                )
                print(f"Progress chart saved: {chart_path}")

            self._print_final_results(metrics.summary())

            return {
                "success": True,
                "total_time": total_time,
                "training_results": metrics.summary(),
                "chart_path": chart_path,
            }

        except KeyboardInterrupt:
            print("\nTraining interrupted by user")
            if self.session is not None:
                self.session.save_model()
            total_time = time.time() - start_time
            return {
                "success": False,
                "interrupted": True,
                "total_time": total_time,
                "message": "Training interrupted by user",
            }

        except Exception as e:
            print(f"\nTraining failed with error: {e}")
            traceback.print_exc()

            total_time = time.time() - start_time
            return {"success": False, "error": str(e), "total_time": total_time}

    def _print_final_results(self, summary: Dict[str, Any]):
        """Print final training results."""
        print("\n" + "=" * 60)
        print("FINAL TRAINING RESULTS")
        print("=" * 60)
        print(f"Games:       {summary['games_completed']:,}")
        print(
            f"Wins/Losses/Ties: {summary['wins']}/{summary['losses']}/{summary['ties']}"
        )
        print(f"Win Rate:    {summary['win_rate']:.3f}")
        print(f"Avg Reward:  {summary['average_reward']:.3f}")
        print(f"Avg Length:  {summary['average_game_length']:.1f} decisions")
        print("=" * 60)

    def quick_test(self) -> Dict[str, Any]:
        """Run a quick test of the training pipeline."""
        print("Running quick PPO training test...")

        original_config = self.config
        self.config = replace(
            original_config,
            max_games=20,
            rollout_max_length=256,
            num_rollouts=2,
            auto_save_interval=0,
        )

        try:
            result = self.run_training()
            print("Quick test completed!")
            return result
        finally:
            self.config = original_config
