import pytest

from model_grid import (
    ModelGrid,
    DuplicateNameError,
    NotFoundError,
    PreprocessingError,
    TrainingError,
    ModelGridRunError,
)
from conftest import RecordingEngine, RecordingTrainer


SHARED = {"data": "DATA", "resampling": "cv-5", "metric": "AUC", "method": "logistic_regression"}


def test_create_starts_empty():
    grid = ModelGrid.create(verbose=False)
    assert grid.shared_settings == {}
    assert grid.experiment_names == []
    assert grid.get_artifacts() == {}
    assert len(grid) == 0


def test_builder_calls_return_same_grid(fake_grid):
    assert fake_grid.set_shared_settings(SHARED) is fake_grid
    assert fake_grid.add_experiment("A") is fake_grid
    assert fake_grid.run() is fake_grid
    assert fake_grid.remove_experiment("A") is fake_grid


def test_set_shared_settings_replaces_by_default(fake_grid):
    fake_grid.set_shared_settings({"metric": "AUC", "seed": 1})
    fake_grid.set_shared_settings({"metric": "Accuracy"})
    assert fake_grid.shared_settings == {"metric": "Accuracy"}


def test_set_shared_settings_merge(fake_grid):
    fake_grid.set_shared_settings({"metric": "AUC", "seed": 1})
    fake_grid.set_shared_settings(merge=True, seed=2, resampling="cv-3")
    assert fake_grid.shared_settings == {"metric": "AUC", "seed": 2, "resampling": "cv-3"}


def test_shared_settings_copy_is_not_live(fake_grid):
    fake_grid.set_shared_settings({"metric": "AUC"})
    fake_grid.shared_settings["metric"] = "changed"
    assert fake_grid.shared_settings["metric"] == "AUC"


def test_empty_overrides_pass_shared_settings_exactly(fake_grid, recording_trainer):
    fake_grid.set_shared_settings(SHARED).add_experiment("A").add_experiment("B", overrides={})
    fake_grid.run()

    for _, config in recording_trainer.calls:
        assert config == SHARED


def test_overrides_win_key_by_key(fake_grid, recording_trainer):
    overrides = {"metric": "Accuracy", "params": {"C": 0.1}}
    fake_grid.set_shared_settings(SHARED).add_experiment("B", overrides=overrides)
    fake_grid.run()

    (_, config), = recording_trainer.calls
    for key, value in overrides.items():
        assert config[key] == value
    for key in set(SHARED) - set(overrides):
        assert config[key] == SHARED[key]


def test_merge_is_one_level(fake_grid):
    fake_grid.set_shared_settings({"params": {"max_iter": 500, "C": 1.0}})
    fake_grid.add_experiment("rf", overrides={"params": {"n_estimators": 10}})
    assert fake_grid.effective_config("rf")["params"] == {"n_estimators": 10}


def test_duplicate_name_fails_and_leaves_grid_unchanged(fake_grid):
    fake_grid.add_experiment("A", overrides={"metric": "AUC"})
    before = fake_grid.get_experiment("A")

    with pytest.raises(DuplicateNameError, match="'A'"):
        fake_grid.add_experiment("A", overrides={"metric": "Accuracy"})

    assert fake_grid.experiment_names == ["A"]
    assert fake_grid.get_experiment("A") is before


@pytest.mark.parametrize("bad_name", ["", None, 3])
def test_invalid_names_rejected(fake_grid, bad_name):
    with pytest.raises(ValueError, match="non-empty string"):
        fake_grid.add_experiment(bad_name)


def test_add_does_not_execute(fake_grid, recording_engine, recording_trainer):
    fake_grid.set_shared_settings(SHARED).add_experiment("A", preprocessing="recipe")
    assert recording_engine.calls == []
    assert recording_trainer.calls == []


def test_remove_unknown_raises_not_found(fake_grid):
    with pytest.raises(NotFoundError, match="not registered"):
        fake_grid.remove_experiment("missing")
    with pytest.raises(KeyError):
        fake_grid.get_experiment("missing")


def test_remove_drops_artifact_and_excludes_from_next_run(fake_grid, recording_trainer):
    fake_grid.set_shared_settings(SHARED).add_experiment("A").add_experiment("B").run()
    assert list(fake_grid.get_artifacts()) == ["A", "B"]

    fake_grid.remove_experiment("A")
    assert list(fake_grid.get_artifacts()) == ["B"]

    recording_trainer.calls.clear()
    fake_grid.run()
    assert list(fake_grid.get_artifacts()) == ["B"]
    assert len(recording_trainer.calls) == 1


def test_run_twice_resolves_identical_configs(fake_grid):
    fake_grid.set_shared_settings(SHARED)
    fake_grid.add_experiment("A").add_experiment("B", overrides={"metric": "Accuracy"})

    first = {n: dict(a.config) for n, a in fake_grid.run().get_artifacts().items()}
    second = {n: dict(a.config) for n, a in fake_grid.run().get_artifacts().items()}
    assert first == second


def test_rerun_replaces_artifact(fake_grid):
    fake_grid.set_shared_settings(SHARED).add_experiment("A").run()
    old = fake_grid.get_artifacts()["A"]
    fake_grid.run()
    assert fake_grid.get_artifacts()["A"] is not old


def test_artifact_config_is_read_only(fake_grid):
    fake_grid.set_shared_settings(SHARED).add_experiment("A").run()
    artifact = fake_grid.get_artifacts()["A"]
    with pytest.raises(TypeError):
        artifact.config["metric"] = "other"
    with pytest.raises(AttributeError):
        artifact.model = None


def test_scenario_shared_metric_and_override(fake_grid):
    fake_grid.set_shared_settings({"resampling": "cv-5", "metric": "AUC"})
    fake_grid.add_experiment("A")
    fake_grid.add_experiment("B", overrides={"metric": "Accuracy"})
    fake_grid.run()

    artifacts = fake_grid.get_artifacts()
    assert list(artifacts) == ["A", "B"]
    assert artifacts["A"].config["metric"] == "AUC"
    assert artifacts["B"].config["metric"] == "Accuracy"


def test_preprocessing_spec_passed_through_untouched(fake_grid, recording_engine, recording_trainer):
    spec = object()
    fake_grid.set_shared_settings(SHARED).add_experiment("A", preprocessing=spec).run()

    (seen_spec, seen_data, seen_config), = recording_engine.calls
    assert seen_spec is spec
    assert seen_data == "DATA"
    assert seen_config == SHARED

    data, _ = recording_trainer.calls[0]
    assert data == {"prepared_with": spec, "data": "DATA"}
    assert fake_grid.get_artifacts()["A"].preprocessing is spec


def test_without_preprocessing_trainer_gets_raw_data(fake_grid, recording_engine, recording_trainer):
    fake_grid.set_shared_settings(SHARED).add_experiment("A").run()
    assert recording_engine.calls == []
    assert recording_trainer.calls[0][0] == "DATA"


def test_runs_in_registration_order(fake_grid, recording_trainer):
    fake_grid.set_shared_settings(SHARED)
    for name in ["z", "a", "m"]:
        fake_grid.add_experiment(name, overrides={"tag": name})
    fake_grid.run()
    assert [c["tag"] for _, c in recording_trainer.calls] == ["z", "a", "m"]
    assert list(fake_grid.get_artifacts()) == ["z", "a", "m"]


def test_preprocessing_failure_does_not_block_others():
    engine = RecordingEngine(fail_on={"bad"})
    trainer = RecordingTrainer()
    grid = ModelGrid.create(preprocessor=engine, trainer=trainer, verbose=False)
    grid.set_shared_settings(SHARED)
    grid.add_experiment("A").add_experiment("C", preprocessing="bad").add_experiment("D", preprocessing="good")

    grid.run()

    assert list(grid.get_artifacts()) == ["A", "D"]
    assert list(grid.failures) == ["C"]
    err = grid.failures["C"]
    assert isinstance(err, PreprocessingError)
    assert err.name == "C"
    assert "could not estimate" in str(err.cause)
    assert "'C'" in str(err)
    assert [o.status for o in grid.outcomes.values()] == ["ok", "failed", "ok"]
    # Trainer was never called for C
    assert len(trainer.calls) == 2


def test_training_failure_is_reported_as_training_error():
    trainer = RecordingTrainer(fail_when=lambda cfg: cfg.get("method") == "broken")
    grid = ModelGrid.create(preprocessor=RecordingEngine(), trainer=trainer, verbose=False)
    grid.set_shared_settings(SHARED)
    grid.add_experiment("ok").add_experiment("bad", overrides={"method": "broken"})

    grid.run()

    assert list(grid.get_artifacts()) == ["ok"]
    assert isinstance(grid.failures["bad"], TrainingError)
    assert isinstance(grid.failures["bad"].cause, ValueError)


def test_raise_for_failures_aggregates_and_keeps_successes():
    engine = RecordingEngine(fail_on={"bad"})
    trainer = RecordingTrainer(fail_when=lambda cfg: cfg.get("method") == "broken")
    grid = ModelGrid.create(preprocessor=engine, trainer=trainer, verbose=False)
    grid.set_shared_settings(SHARED)
    grid.add_experiment("A")
    grid.add_experiment("C", preprocessing="bad")
    grid.add_experiment("E", overrides={"method": "broken"})
    grid.run()

    with pytest.raises(ModelGridRunError, match="2 experiment") as exc_info:
        grid.raise_for_failures()
    assert list(exc_info.value.failures) == ["C", "E"]
    assert list(grid.get_artifacts()) == ["A"]


def test_raise_for_failures_silent_when_all_succeed(fake_grid):
    fake_grid.set_shared_settings(SHARED).add_experiment("A").run()
    fake_grid.raise_for_failures()
    assert fake_grid.failures == {}


def test_failed_rerun_drops_stale_artifact():
    trainer = RecordingTrainer()
    grid = ModelGrid.create(preprocessor=RecordingEngine(), trainer=trainer, verbose=False)
    grid.set_shared_settings(SHARED).add_experiment("A").run()
    assert "A" in grid.get_artifacts()

    trainer.fail_when = lambda cfg: True
    grid.run()
    assert grid.get_artifacts() == {}
    assert isinstance(grid.failures["A"], TrainingError)


def test_compare_aligns_fold_scores(fake_grid):
    fake_grid.set_shared_settings(SHARED).add_experiment("A").add_experiment("B").run()
    frame = fake_grid.compare()
    assert list(frame.columns) == ["A", "B"]
    assert frame["A"].tolist() == [0.5, 0.75, 1.0]


def test_compare_requires_common_metric(fake_grid):
    fake_grid.set_shared_settings(SHARED)
    fake_grid.add_experiment("A").add_experiment("B", overrides={"metric": "Accuracy"}).run()
    with pytest.raises(ValueError, match="different metrics"):
        fake_grid.compare()
    with pytest.raises(KeyError, match="'B'"):
        fake_grid.compare(metric="AUC")


def test_summary_lists_every_experiment():
    engine = RecordingEngine(fail_on={"bad"})
    grid = ModelGrid.create(preprocessor=engine, trainer=RecordingTrainer(), verbose=False)
    grid.set_shared_settings(SHARED).add_experiment("A").add_experiment("C", preprocessing="bad").run()
    grid.add_experiment("later")

    summary = grid.summary()
    assert list(summary.index) == ["A", "C", "later"]
    assert summary.loc["A", "status"] == "ok"
    assert summary.loc["A", "mean"] == pytest.approx(0.75)
    assert summary.loc["C", "status"] == "failed"
    assert summary.loc["later", "status"] == "not_run"
