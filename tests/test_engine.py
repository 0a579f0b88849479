import os
import sys
import datetime
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig
from engine import AnalyticsEngine
from models import Exercise, GoalType
from progression_service import ProgressionState

UTC = datetime.timezone.utc


def at(day, hour=9):
    return datetime.datetime(2024, 1, day, hour, 0, tzinfo=UTC)


@pytest.fixture
def engine(tmp_path):
    yaml_path = str(tmp_path / "settings.yaml")
    YamlConfig(yaml_path).save({"timezone": "UTC", "first_weekday": 0, "weight_unit": "kg"})
    engine = AnalyticsEngine(str(tmp_path / "workout.db"), yaml_path)
    engine.save_exercise(
        Exercise(id="squat", name="Squat", primary_category="Legs", target_rep_min=8, target_rep_max=12)
    )
    engine.save_exercise(Exercise(id="bench", name="Bench", primary_category="Chest"))
    engine.log_sets("squat", at(1), [{"weight": 100, "reps": 10}] * 3)
    engine.log_sets("squat", at(8), [{"weight": 100, "reps": 12}] * 3)
    engine.log_sets("bench", at(8), [{"weight": 80, "reps": 8}])
    return engine


def test_progression(engine):
    status = engine.progression_status("squat")
    assert status.state is ProgressionState.READY_TO_INCREASE_WEIGHT
    assert status.new_weight == 105
    assert status.reset_reps == 8

    live = engine.live_progression("squat", [(105, 8), (105, 8)], today=datetime.date(2024, 1, 10))
    assert live.state is ProgressionState.PROGRESSING_TOWARD_TARGET


def test_sessions(engine):
    sessions = engine.sessions.recent_sessions("squat")
    assert [s.date for s in sessions] == [datetime.date(2024, 1, 8), datetime.date(2024, 1, 1)]
    assert sessions[0].total_volume == 3600


def test_streak(engine):
    data = engine.streak(datetime.date(2024, 1, 10))
    assert data.current_streak == 2
    assert data.best_streak == 2
    assert data.last_workout_date == datetime.date(2024, 1, 8)


def test_recovery(engine):
    now = at(9)
    status = engine.muscle_recovery(now)
    assert status["Legs"].recovery_percentage == pytest.approx(40)
    assert status["Legs"].sets_completed == 3
    assert status["Chest"].sets_completed == 1
    grouped = engine.muscle_recovery(now, consolidated=True)
    assert grouped["Legs"].recovery_percentage == pytest.approx(40)
    assert grouped["Back"].recovery_percentage == 100


def test_statistics(engine):
    today = datetime.date(2024, 1, 10)
    stats = engine.statistics
    assert stats.workout_count(7, today) == 1
    assert stats.set_count(7, today) == 4
    assert stats.total_volume(7, today) == 3600 + 640
    comparison = stats.comparison_stats(7, today)
    assert comparison["workouts"].current == 1
    assert comparison["workouts"].previous == 1
    assert comparison["volume"].percent_change == pytest.approx((4240 - 3000) / 3000 * 100)
    breakdown = stats.muscle_group_breakdown(7, today)
    assert [c.category for c in breakdown] == ["Legs", "Chest"]


def test_comparison_counts_window_start_as_current(engine):
    engine.log_sets("bench", at(3), [{"weight": 80, "reps": 8}])
    comparison = engine.statistics.comparison_stats(7, datetime.date(2024, 1, 10))
    assert comparison["workouts"].current == 2
    assert comparison["workouts"].previous == 1
    assert comparison["sets"].current == 5


def test_goals(engine):
    engine.create_goal(GoalType.WEEKLY_WORKOUTS, 2)
    lift = engine.create_goal(GoalType.SPECIFIC_LIFT, 120, exercise_id="squat")
    assert lift.exercise_name == "Squat"
    assert lift.weight_unit == "kg"
    progress = engine.goal_progress(datetime.date(2024, 1, 10))
    assert [p.current_value for p in progress] == [1, 100]
    assert progress[0].progress_percentage == 50


def test_log_sets_unknown_exercise(engine):
    with pytest.raises(ValueError):
        engine.log_sets("deadlift", at(9), [{"weight": 180, "reps": 5}])


def test_db_path_from_environment(tmp_path, monkeypatch):
    db_file = str(tmp_path / "env.db")
    monkeypatch.setenv("WORKOUT_DB", db_file)
    engine = AnalyticsEngine(yaml_path=str(tmp_path / "missing.yaml"))
    assert engine.db_path == db_file
    assert os.path.exists(db_file)


@pytest.mark.asyncio
async def test_async_log_and_fetch(engine):
    ids = await engine.log_sets_async("bench", at(9), [{"weight": 85, "reps": 8}, {"weight": 85, "reps": 7}])
    assert len(ids) == 2
    sets = await engine.fetch_sets_async("bench", start=at(9, 0))
    assert [(s.weight, s.reps, s.unit) for s in sets] == [(85.0, 8, "kg"), (85.0, 7, "kg")]
    # the synchronous services see the async writes
    assert engine.statistics.workout_count(1, datetime.date(2024, 1, 9)) == 2
