"""
Tests for the training session state machine.
"""

import asyncio

import pytest

from mimicrl.model.model_saver import ModelSaver
from mimicrl.policy.agent import PolicyAgent
from mimicrl.training.ppo.collect_rollout import MissingOutcomeError
from mimicrl.training.ppo.config import PPOConfig
from mimicrl.training.ppo.events import TrainingObserver
from mimicrl.training.ppo.training_session import SessionState, TrainingSession


class RecordingObserver(TrainingObserver):
    def __init__(self):
        self.events = []

    def on_rollout_start(self, iteration):
        self.events.append(("rollout_start", iteration))

    def on_episode_end(self, episode):
        self.events.append(("episode_end", episode.trained_outcome))

    def on_training_progress(self, snapshot):
        self.events.append(("progress", snapshot["iteration"]))

    def on_training_complete(self, metrics):
        self.events.append(("complete", metrics.games_completed))


class BrokenObserver(TrainingObserver):
    def on_rollout_start(self, iteration):
        raise RuntimeError("broken observer")

    def on_episode_end(self, episode):
        raise RuntimeError("broken observer")

    def on_training_progress(self, snapshot):
        raise RuntimeError("broken observer")


class CallbackObserver(TrainingObserver):
    """Runs ``callback()`` on the first progress report only."""

    def __init__(self, callback):
        self.callback = callback
        self.calls = 0

    def on_training_progress(self, snapshot):
        self.calls += 1
        if self.calls == 1:
            self.callback()


def make_session(game_factory, kwargs, **session_kwargs) -> TrainingSession:
    return TrainingSession(game_factory, PPOConfig(**kwargs), **session_kwargs)


class TestSessionSetup:
    """Test initialization and validation."""

    def test_unsupported_algorithm(self, countdown_game, small_config_kwargs):
        small_config_kwargs["algorithm"] = "A2C"
        session = make_session(countdown_game, small_config_kwargs)
        with pytest.raises(ValueError, match="Unsupported"):
            session.initialize()

    def test_trained_seat_out_of_range(self, countdown_game, small_config_kwargs):
        small_config_kwargs["trained_seat"] = 3
        session = make_session(countdown_game, small_config_kwargs)
        with pytest.raises(ValueError):
            session.initialize()

    def test_initialize_builds_components(self, countdown_game, small_config_kwargs):
        small_config_kwargs["num_rollouts"] = 3
        session = make_session(countdown_game, small_config_kwargs)

        session.initialize()

        assert session.agent.observation_size == 3
        assert session.trainer.agent is session.agent
        assert len(session.collectors) == 3
        assert len({id(c.game_core) for c in session.collectors}) == 3
        assert session.state is SessionState.IDLE

    def test_start_outside_event_loop(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)
        session.initialize()
        with pytest.raises(RuntimeError):
            session.start()

    def test_resume_outside_event_loop(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)
        session.initialize()
        session.state = SessionState.PAUSED

        with pytest.raises(RuntimeError):
            session.resume()

        assert session.state is SessionState.PAUSED
        assert session._task is None


class TestSessionLifecycle:
    """Test the training loop and its state transitions."""

    def test_runs_to_completion(self, countdown_game, small_config_kwargs, tmp_path):
        """Training stops at max_games and writes the final checkpoint."""
        small_config_kwargs["max_games"] = 8
        observer = RecordingObserver()
        session = make_session(
            countdown_game,
            small_config_kwargs,
            model_saver=ModelSaver(str(tmp_path)),
            observers=[observer],
        )

        metrics = asyncio.run(session.run())

        assert session.state is SessionState.COMPLETED
        assert metrics.games_completed == 8
        assert session.iteration == 2
        assert (tmp_path / "final_model.pth").exists()
        assert observer.events[0] == ("rollout_start", 1)
        assert observer.events[-1] == ("complete", 8)
        assert observer.events.count(("progress", 2)) == 1
        assert session.trainer.get_stats().total_samples == 40

    def test_parallel_collectors(self, countdown_game, small_config_kwargs):
        """All collectors finish before the single pooled update."""
        small_config_kwargs.update(num_rollouts=2, max_games=8)
        session = make_session(countdown_game, small_config_kwargs)

        asyncio.run(session.run())

        assert session.iteration == 1
        assert session.last_progress["samples"] == 40
        assert session.last_progress["rollout"]["episodes"] == 8
        assert session.trainer.get_stats().total_samples == 40

    def test_progress_snapshot(self, countdown_game, small_config_kwargs):
        small_config_kwargs["max_games"] = 4
        session = make_session(countdown_game, small_config_kwargs)

        asyncio.run(session.run())
        snapshot = session.last_progress

        assert snapshot["iteration"] == 1
        assert snapshot["rollout"]["wins"] == 2
        assert snapshot["rollout"]["losses"] == 1
        assert snapshot["rollout"]["ties"] == 1
        assert snapshot["metrics"]["games_completed"] == 4
        assert snapshot["progress_percentage"] == 100.0
        assert snapshot["policy_entropy"] > 0

    def test_pause_and_resume_are_idempotent(self, countdown_game, small_config_kwargs):
        small_config_kwargs["max_games"] = 4
        session = make_session(countdown_game, small_config_kwargs)

        async def run():
            session.start()
            task = session._task
            session.pause()
            session.pause()
            assert session.state is SessionState.PAUSED
            session.resume()
            session.resume()
            assert session.state is SessionState.TRAINING
            assert session._task is task
            await session.wait()

        asyncio.run(run())

        assert session.state is SessionState.COMPLETED

    def test_pause_wait_resume(self, countdown_game, small_config_kwargs):
        """A paused session finishes its iteration, then continues on resume."""
        small_config_kwargs["max_games"] = 8
        session = make_session(countdown_game, small_config_kwargs)
        session.add_observer(CallbackObserver(session.pause))

        async def run():
            session.start()
            await session.wait()
            assert session.state is SessionState.PAUSED
            assert session.iteration == 1
            assert session.metrics.games_completed == 4

            session.resume()
            await session.wait()

        asyncio.run(run())

        assert session.state is SessionState.COMPLETED
        assert session.metrics.games_completed == 8

    def test_stop_saves_and_goes_idle(self, countdown_game, small_config_kwargs, tmp_path):
        small_config_kwargs["max_games"] = 100
        session = make_session(
            countdown_game, small_config_kwargs, model_saver=ModelSaver(str(tmp_path))
        )
        session.add_observer(CallbackObserver(session.stop))

        asyncio.run(session.run())

        assert session.state is SessionState.IDLE
        assert session.iteration == 1
        assert session.collectors == []
        assert (tmp_path / "current_model.pth").exists()
        assert not (tmp_path / "final_model.pth").exists()

    def test_restart_after_stop(self, countdown_game, small_config_kwargs):
        small_config_kwargs["max_games"] = 4
        session = make_session(countdown_game, small_config_kwargs)
        session.add_observer(CallbackObserver(session.stop))
        asyncio.run(session.run())

        asyncio.run(session.run())

        assert session.state is SessionState.COMPLETED
        assert len(session.collectors) == 1
        assert session.metrics.games_completed == 4

    def test_observer_errors_are_isolated(self, countdown_game, small_config_kwargs):
        small_config_kwargs["max_games"] = 4
        recorder = RecordingObserver()
        session = make_session(
            countdown_game, small_config_kwargs, observers=[BrokenObserver(), recorder]
        )

        asyncio.run(session.run())

        assert session.state is SessionState.COMPLETED
        assert ("complete", 4) in recorder.events

    def test_iteration_error_recovers(self, countdown_game, small_config_kwargs):
        """A failing update is logged and the next iteration still runs."""
        small_config_kwargs["max_games"] = 8
        session = make_session(countdown_game, small_config_kwargs)
        session.initialize()
        original_train = session.trainer.train
        calls = []

        def flaky_train(batch):
            calls.append(len(batch))
            if len(calls) == 1:
                raise RuntimeError("transient failure")
            return original_train(batch)

        session.trainer.train = flaky_train

        asyncio.run(session.run())

        assert calls == [20, 20]
        assert session.state is SessionState.COMPLETED

    def test_missing_outcome_aborts_training(self, countdown_game, small_config_kwargs):
        session = make_session(
            lambda: countdown_game(omit_outcome=True), small_config_kwargs
        )
        recorder = RecordingObserver()
        session.add_observer(recorder)

        with pytest.raises(MissingOutcomeError):
            asyncio.run(session.run())

        assert session.state is SessionState.IDLE
        assert session.collectors == []
        assert session.metrics.games_completed == 0
        assert not any(name == "progress" for name, _ in recorder.events)


class TestSessionWeights:
    """Test export, import and opponent snapshots."""

    def test_export_import_round_trip(self, countdown_game, small_config_kwargs):
        source = make_session(countdown_game, small_config_kwargs)
        source.initialize()
        data = source.export_agent_weights()

        target = make_session(countdown_game, small_config_kwargs)
        target.initialize()
        target.import_agent_weights(data)

        obs = [0.5, 0.0, 1.0]
        assert target.agent.estimate_value(obs) == pytest.approx(source.agent.estimate_value(obs))
        assert target.trainer.agent is target.agent
        assert all(c.agent is target.agent for c in target.collectors)
        assert data["metadata"]["games_completed"] == 0

    def test_import_incompatible_raises(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)
        session.initialize()
        original = session.agent
        foreign = PolicyAgent(5, 2, policy_hidden_layers=[8], value_hidden_layers=[8])

        with pytest.raises(ValueError, match="Invalid agent weights bundle"):
            session.import_agent_weights(foreign.to_bundle().to_dict())

        assert session.agent is original

    def test_snapshot_opponent(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)
        session.initialize()

        option = session.snapshot_opponent("iteration-0", weight=2.0)

        assert len(session.opponent_pool.get_options()) == 2
        assert option.weight == 2.0

    def test_export_requires_agent(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)
        with pytest.raises(RuntimeError):
            session.export_agent_weights()


class TestUpdateTrainingParams:
    """Test live configuration changes."""

    def test_unknown_parameter(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)
        with pytest.raises(ValueError, match="Unknown"):
            session.update_training_params(warp_speed=9)

    def test_invalid_value(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)
        with pytest.raises(ValueError):
            session.update_training_params(learning_rate=-1.0)

    def test_seat_checked_against_game(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)
        session.initialize()

        with pytest.raises(ValueError, match="trained_seat"):
            session.update_training_params(trained_seat=5)

        assert session.config.trained_seat == 0
        assert all(c.config.trained_seat == 0 for c in session.collectors)

    def test_algorithm_checked(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)
        with pytest.raises(ValueError, match="algorithm"):
            session.update_training_params(algorithm="A2C")
        assert session.config.algorithm == "PPO"

    def test_network_shape_frozen_after_build(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)
        session.initialize()

        with pytest.raises(ValueError, match="policy_hidden_layers"):
            session.update_training_params(policy_hidden_layers=[16], learning_rate=5e-4)
        with pytest.raises(ValueError, match="seed"):
            session.update_training_params(seed=7)

        # Nothing from a rejected update is applied
        assert session.config.policy_hidden_layers == [8]
        assert session.config.learning_rate == PPOConfig().learning_rate

        # Restating the current value is fine
        session.update_training_params(policy_hidden_layers=[8], activation="relu")

    def test_network_shape_free_before_build(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)

        session.update_training_params(policy_hidden_layers=[16])
        session.initialize()

        assert session.agent.policy_hidden_layers == [16]

    def test_changes_propagate(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)
        session.initialize()

        session.update_training_params(learning_rate=5e-4, rollout_max_length=40)

        assert session.trainer.optimizer.param_groups[0]["lr"] == 5e-4
        assert all(c.config.rollout_max_length == 40 for c in session.collectors)

    def test_num_rollouts_rebuilds_collectors(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)
        session.initialize()

        session.update_training_params(num_rollouts=2)

        assert len(session.collectors) == 2

    def test_status(self, countdown_game, small_config_kwargs):
        session = make_session(countdown_game, small_config_kwargs)
        session.initialize()

        status = session.get_status()

        assert status["state"] == "idle"
        assert status["is_training"] is False
        assert status["num_collectors"] == 1
        assert status["num_opponents"] == 1
