"""Tests for the per-exercise state machines."""

import pytest

from coach_service.models import exercises as exercises_module
from coach_service.models import (
    ExerciseType,
    JointType,
    Landmark,
    NamedJointSet,
    PoseCorrectnessChanged,
    RepCompleted,
    SessionState,
    Stage,
    get_analyzer,
    parse_exercise,
)

from conftest import curl_frame, jack_frame, knees_frame, make_frame, running_frame, warrior_frame


def run(exercise, frame, state):
    return get_analyzer(exercise).analyze(NamedJointSet.from_landmarks(frame), state)


def reps(result):
    return sum(isinstance(e, RepCompleted) for e in result.events)


def fix_angles(monkeypatch, *angles):
    """Make the analyzers see the given angles, in call order."""
    values = iter(angles)
    monkeypatch.setattr(exercises_module, "angle_at", lambda a, b, c: next(values))


# ============================================================================
# Strength
# ============================================================================

def test_curl_counts_one_rep_on_down_to_up():
    state = SessionState.initial(ExerciseType.STRENGTH)
    results = [run(ExerciseType.STRENGTH, curl_frame(a), state) for a in (170, 150, 35, 170)]

    assert [reps(r) for r in results] == [0, 0, 1, 0]
    assert results[2].feedback == "Peak contraction! Lower slowly."
    assert results[3].feedback == "Lowered fully. Great rep!"
    assert state.stage == Stage.DOWN


def test_curl_does_not_recount_while_up():
    state = SessionState.initial(ExerciseType.STRENGTH)
    angles = (170, 35, 30, 38, 25, 50, 35)
    total = sum(reps(run(ExerciseType.STRENGTH, curl_frame(a), state)) for a in angles)

    assert total == 1
    assert state.stage == Stage.UP


def test_curl_from_start_needs_full_extension_first():
    state = SessionState.initial(ExerciseType.STRENGTH)
    result = run(ExerciseType.STRENGTH, curl_frame(30), state)

    assert reps(result) == 0
    assert state.stage == Stage.START


def test_curl_low_visibility_blocks_transition():
    state = SessionState.initial(ExerciseType.STRENGTH)
    run(ExerciseType.STRENGTH, curl_frame(170), state)
    result = run(ExerciseType.STRENGTH, curl_frame(30, visibility=0.5), state)

    assert reps(result) == 0
    assert state.stage == Stage.DOWN
    assert result.feedback == "Ensure your left arm is fully visible to the camera."


def test_curl_missing_joint_is_feedback_only():
    state = SessionState.initial(ExerciseType.STRENGTH)
    frame = make_frame({JointType.LEFT_WRIST: None})
    result = run(ExerciseType.STRENGTH, frame, state)

    assert result.events == []
    assert "visible" in result.feedback


# ============================================================================
# Cardio
# ============================================================================

def test_jumping_jack_rep_needs_both_conditions():
    state = SessionState.initial(ExerciseType.CARDIO)
    assert state.stage == Stage.DOWN

    result = run(ExerciseType.CARDIO, jack_frame(legs_apart=True, arms_up=True), state)

    assert reps(result) == 1
    assert state.stage == Stage.UP
    assert result.feedback == "Excellent! Return to start."


def test_jumping_jack_legs_only_nudges_arms():
    state = SessionState.initial(ExerciseType.CARDIO)
    result = run(ExerciseType.CARDIO, jack_frame(legs_apart=True, arms_up=False), state)

    assert reps(result) == 0
    assert state.stage == Stage.DOWN
    assert result.feedback == "Bring your arms up!"


def test_jumping_jack_arms_only_nudges_feet():
    state = SessionState.initial(ExerciseType.CARDIO)
    result = run(ExerciseType.CARDIO, jack_frame(legs_apart=False, arms_up=True), state)

    assert reps(result) == 0
    assert result.feedback == "Jump your feet out!"


def test_jumping_jack_full_cycle():
    state = SessionState.initial(ExerciseType.CARDIO)
    sequence = [(False, False), (True, True), (True, True), (False, False), (True, True)]
    results = [run(ExerciseType.CARDIO, jack_frame(*s), state) for s in sequence]

    assert sum(reps(r) for r in results) == 2
    assert results[3].feedback == "Ready for the next jump!"


# ============================================================================
# Yoga
# ============================================================================

def test_warrior_entering_correct_pose():
    state = SessionState.initial(ExerciseType.YOGA)
    result = run(ExerciseType.YOGA, warrior_frame(95), state)

    assert result.events == [PoseCorrectnessChanged(True)]
    assert result.feedback == "Perfect form! Hold it strong."


def test_warrior_holding_emits_nothing_new():
    state = SessionState(pose_correct=True)
    result = run(ExerciseType.YOGA, warrior_frame(95), state)

    assert result.events == []
    assert result.feedback is None
    assert result.detected_issue == "User is holding the pose correctly."


@pytest.mark.parametrize("knee, arms_straight, message", [
    (70, True, "Front knee is bent too much. Ease up slightly."),
    (84, True, "Front knee is bent too much. Ease up slightly."),
    (130, True, "Bend the front knee more to a 90-degree angle."),
    (95, False, "Arms are not fully extended. Reach out further!"),
    # Knee problems take priority over arms
    (70, False, "Front knee is bent too much. Ease up slightly."),
    (130, False, "Bend the front knee more to a 90-degree angle."),
])
def test_warrior_issue_priority(knee, arms_straight, message):
    state = SessionState(pose_correct=True)
    result = run(ExerciseType.YOGA, warrior_frame(knee, arms_straight), state)

    assert result.feedback == message
    assert result.events == [PoseCorrectnessChanged(False)]


@pytest.mark.parametrize("arm, knee, message", [
    (170, 85.0, "Front knee is bent too much. Ease up slightly."),
    (170, 110.0, "Bend the front knee more to a 90-degree angle."),
    (160.0, 95, "Arms are not fully extended. Reach out further!"),
])
def test_warrior_bounds_are_exclusive(monkeypatch, arm, knee, message):
    fix_angles(monkeypatch, arm, knee)
    state = SessionState(pose_correct=True)
    result = run(ExerciseType.YOGA, warrior_frame(95), state)

    assert result.feedback == message
    assert result.events == [PoseCorrectnessChanged(False)]


@pytest.mark.parametrize("knee", [85.1, 109.9])
def test_warrior_knee_just_inside_bounds(monkeypatch, knee):
    fix_angles(monkeypatch, 160.1, knee)
    state = SessionState.initial(ExerciseType.YOGA)
    result = run(ExerciseType.YOGA, warrior_frame(95), state)

    assert result.events == [PoseCorrectnessChanged(True)]


def test_warrior_low_visibility_drops_correctness():
    state = SessionState(pose_correct=True)
    frame = warrior_frame(95)
    frame[JointType.LEFT_SHOULDER.value] = Landmark(x=0.4, y=0.3, visibility=0.3)
    result = run(ExerciseType.YOGA, frame, state)

    assert result.feedback == "Ensure your full body is visible from the side."
    assert result.events == [PoseCorrectnessChanged(False)]


# ============================================================================
# HIIT
# ============================================================================

def test_high_knees_alternating_raises_each_count():
    state = SessionState.initial(ExerciseType.HIIT)
    sequence = [(True, False), (True, False), (False, True), (False, True), (True, False)]
    results = [run(ExerciseType.HIIT, knees_frame(*s), state) for s in sequence]

    assert [reps(r) for r in results] == [1, 0, 1, 0, 1]
    assert results[0].feedback == "Good! Switch."
    assert results[2].feedback == "Nice! Switch."


def test_high_knees_both_up_does_not_recount():
    state = SessionState.initial(ExerciseType.HIIT)
    results = [run(ExerciseType.HIIT, knees_frame(True, True), state) for _ in range(6)]

    assert [reps(r) for r in results] == [1, 0, 0, 0, 0, 0]
    assert state.stage == Stage.LEFT_UP


def test_high_knees_switch_through_both_up():
    state = SessionState.initial(ExerciseType.HIIT)
    sequence = [(True, False), (True, True), (False, True), (True, True), (True, False)]
    results = [run(ExerciseType.HIIT, knees_frame(*s), state) for s in sequence]

    assert [reps(r) for r in results] == [1, 0, 1, 0, 1]


def test_high_knees_back_down():
    state = SessionState.initial(ExerciseType.HIIT)
    run(ExerciseType.HIIT, knees_frame(True, False), state)
    result = run(ExerciseType.HIIT, knees_frame(False, False), state)

    assert state.stage == Stage.DOWN
    assert result.feedback == "Drive those knees up!"
    assert reps(result) == 0

    again = run(ExerciseType.HIIT, knees_frame(False, False), state)
    assert again.feedback is None


# ============================================================================
# Running
# ============================================================================

def test_running_feedback_only_on_change():
    state = SessionState.initial(ExerciseType.RUNNING)
    analyzer = get_analyzer(ExerciseType.RUNNING)

    first = analyzer.analyze(NamedJointSet.from_landmarks(running_frame(175)), state)
    assert first.events == [PoseCorrectnessChanged(True)]
    assert first.feedback == "Excellent posture! Keep up the great pace."

    state.pose_correct = True
    second = analyzer.analyze(NamedJointSet.from_landmarks(running_frame(172)), state)
    assert second.events == []
    assert second.feedback is None

    slouch = analyzer.analyze(NamedJointSet.from_landmarks(running_frame(150)), state)
    assert slouch.events == [PoseCorrectnessChanged(False)]
    assert slouch.feedback == "Slight slouch detected. Try to keep your back straighter."


@pytest.mark.parametrize("torso, upright", [(165.0, True), (164.9, False)])
def test_running_threshold_is_inclusive(monkeypatch, torso, upright):
    fix_angles(monkeypatch, torso)
    state = SessionState(pose_correct=not upright)
    result = run(ExerciseType.RUNNING, running_frame(170), state)

    assert result.events == [PoseCorrectnessChanged(upright)]


# ============================================================================
# Registry
# ============================================================================

def test_parse_exercise():
    assert parse_exercise("Strength") is ExerciseType.STRENGTH
    assert parse_exercise("hiit") is ExerciseType.HIIT
    with pytest.raises(ValueError):
        parse_exercise("Squat")


def test_hold_type_exercises():
    assert {e for e in ExerciseType if e.is_hold_type} == {ExerciseType.YOGA, ExerciseType.RUNNING}
