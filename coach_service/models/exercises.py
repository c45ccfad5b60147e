"""
LIVECOACH Coach Service - Exercise Analyzers

Rule-based state machines, one per exercise. Each analyzer reads one frame of
named joints plus the session state and reports feedback and events; the
session applies the events to its counters.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from core.config import settings

from .geometry import angle_at
from .pose_frame import NamedJointSet


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS AND DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class ExerciseType(Enum):
    """Supported exercise types."""
    STRENGTH = "Strength"
    CARDIO = "Cardio"
    YOGA = "Yoga"
    HIIT = "HIIT"
    RUNNING = "Running"

    @property
    def is_hold_type(self) -> bool:
        """Hold-type exercises are scored by time in a correct pose, not reps."""
        return self in (ExerciseType.YOGA, ExerciseType.RUNNING)


class Stage(str, Enum):
    """Motion-cycle phase tags."""
    START = "start"
    DOWN = "down"
    UP = "up"
    LEFT_UP = "left_up"
    RIGHT_UP = "right_up"


@dataclass
class SessionState:
    """Per-session counters and state-machine phase."""
    stage: Stage = Stage.START
    last_trigger_mark: int = 0
    rep_count: int = 0
    hold_seconds: int = 0
    pose_correct: bool = False

    @classmethod
    def initial(cls, exercise: ExerciseType) -> "SessionState":
        """Fresh state for an exercise, starting in its initial stage."""
        return cls(stage=get_analyzer(exercise).initial_stage)


@dataclass(frozen=True)
class RepCompleted:
    """A full motion cycle was recognised."""


@dataclass(frozen=True)
class PoseCorrectnessChanged:
    """The hold pose went from correct to incorrect or back."""
    correct: bool


Event = Union[RepCompleted, PoseCorrectnessChanged]


@dataclass
class AnalysisResult:
    """Outcome of analysing one frame. A None feedback keeps the previous message."""
    feedback: Optional[str] = None
    events: List[Event] = field(default_factory=list)
    detected_issue: str = ""


# ═══════════════════════════════════════════════════════════════════════════════
# ANALYZER BASE
# ═══════════════════════════════════════════════════════════════════════════════

class ExerciseAnalyzer:
    """
    Common frame handling for all exercises.

    Subclasses list the joints they need and implement `evaluate`. The
    visibility gate runs first: when any required joint is missing or below
    the visibility threshold, only corrective feedback is returned and the
    stage is left alone.
    """

    exercise: ExerciseType
    required_joints: Tuple[str, ...] = ()
    visibility_message: str = "Make sure you are fully visible to the camera."
    initial_stage: Stage = Stage.START

    def __init__(self, visibility_threshold: Optional[float] = None):
        if visibility_threshold is None:
            visibility_threshold = settings.VISIBILITY_THRESHOLD
        self.visibility_threshold = visibility_threshold

    def analyze(self, joints: NamedJointSet, state: SessionState) -> AnalysisResult:
        if not joints.visible(*self.required_joints, threshold=self.visibility_threshold):
            return self.on_low_visibility(state)
        return self.evaluate(joints, state)

    def on_low_visibility(self, state: SessionState) -> AnalysisResult:
        return AnalysisResult(feedback=self.visibility_message)

    def evaluate(self, joints: NamedJointSet, state: SessionState) -> AnalysisResult:
        raise NotImplementedError


class HoldPoseAnalyzer(ExerciseAnalyzer):
    """Base for exercises timed by how long a correct pose is held."""

    def on_low_visibility(self, state: SessionState) -> AnalysisResult:
        # The hold cannot be verified, so the pose no longer counts as correct
        result = AnalysisResult(feedback=self.visibility_message)
        if state.pose_correct:
            result.events.append(PoseCorrectnessChanged(False))
        return result


# ═══════════════════════════════════════════════════════════════════════════════
# EXERCISE ANALYZERS
# ═══════════════════════════════════════════════════════════════════════════════

# Exercise-specific angle thresholds (degrees)
EXERCISE_THRESHOLDS = {
    ExerciseType.STRENGTH: {
        "elbow_extended": 160,
        "elbow_flexed": 40,
    },
    ExerciseType.CARDIO: {
        "stance_ratio": 1.2,  # ankle spread / hip spread
    },
    ExerciseType.YOGA: {
        "arm_straight": 160,
        "knee_bent": (85, 110),  # exclusive bounds
    },
    ExerciseType.RUNNING: {
        "torso_upright": 165,
    },
}


class BicepCurlAnalyzer(ExerciseAnalyzer):
    """Strength: left-arm bicep curl, one rep per down -> up transition."""

    exercise = ExerciseType.STRENGTH
    required_joints = ("left_shoulder", "left_elbow", "left_wrist")
    visibility_message = "Ensure your left arm is fully visible to the camera."
    initial_stage = Stage.START

    def evaluate(self, joints: NamedJointSet, state: SessionState) -> AnalysisResult:
        thresholds = EXERCISE_THRESHOLDS[self.exercise]
        angle = angle_at(joints.left_shoulder, joints.left_elbow, joints.left_wrist)
        result = AnalysisResult()

        if angle > thresholds["elbow_extended"]:
            if state.stage == Stage.UP:
                result.feedback = "Lowered fully. Great rep!"
            state.stage = Stage.DOWN
        elif angle < thresholds["elbow_flexed"] and state.stage == Stage.DOWN:
            state.stage = Stage.UP
            result.feedback = "Peak contraction! Lower slowly."
            result.events.append(RepCompleted())

        return result


class JumpingJackAnalyzer(ExerciseAnalyzer):
    """Cardio: jumping jacks, a rep needs legs apart and arms up together."""

    exercise = ExerciseType.CARDIO
    required_joints = (
        "left_shoulder", "right_shoulder",
        "left_wrist", "right_wrist",
        "left_hip", "right_hip",
        "left_ankle", "right_ankle",
    )
    visibility_message = "Please face the camera and be fully visible."
    initial_stage = Stage.DOWN

    def evaluate(self, joints: NamedJointSet, state: SessionState) -> AnalysisResult:
        ratio = EXERCISE_THRESHOLDS[self.exercise]["stance_ratio"]
        ankle_spread = abs(joints.left_ankle.x - joints.right_ankle.x)
        hip_spread = abs(joints.left_hip.x - joints.right_hip.x)

        legs_apart = ankle_spread > hip_spread * ratio
        arms_up = (
            joints.left_wrist.y < joints.left_shoulder.y
            and joints.right_wrist.y < joints.right_shoulder.y
        )
        result = AnalysisResult()

        if not legs_apart and not arms_up:
            if state.stage == Stage.UP:
                result.feedback = "Ready for the next jump!"
            state.stage = Stage.DOWN
        elif legs_apart and arms_up:
            if state.stage == Stage.DOWN:
                state.stage = Stage.UP
                result.feedback = "Excellent! Return to start."
                result.events.append(RepCompleted())
        elif state.stage == Stage.DOWN:
            if legs_apart:
                result.feedback = "Bring your arms up!"
            else:
                result.feedback = "Jump your feet out!"

        return result


class WarriorPoseAnalyzer(HoldPoseAnalyzer):
    """Yoga: warrior hold, arms extended and front knee near 90 degrees."""

    exercise = ExerciseType.YOGA
    required_joints = (
        "left_shoulder", "right_shoulder", "left_wrist",
        "left_hip", "left_knee", "left_ankle",
    )
    visibility_message = "Ensure your full body is visible from the side."

    def evaluate(self, joints: NamedJointSet, state: SessionState) -> AnalysisResult:
        thresholds = EXERCISE_THRESHOLDS[self.exercise]
        knee_min, knee_max = thresholds["knee_bent"]

        arm_angle = angle_at(joints.left_wrist, joints.left_shoulder, joints.right_shoulder)
        knee_angle = angle_at(joints.left_hip, joints.left_knee, joints.left_ankle)

        arms_straight = arm_angle > thresholds["arm_straight"]
        knee_bent = knee_min < knee_angle < knee_max
        result = AnalysisResult()

        if arms_straight and knee_bent:
            result.detected_issue = "User is holding the pose correctly."
            if not state.pose_correct:
                result.feedback = "Perfect form! Hold it strong."
                result.events.append(PoseCorrectnessChanged(True))
            return result

        if knee_angle <= knee_min:
            result.detected_issue = "Front knee is bent too much. Ease up slightly."
        elif knee_angle >= knee_max:
            result.detected_issue = "Bend the front knee more to a 90-degree angle."
        else:
            result.detected_issue = "Arms are not fully extended. Reach out further!"

        result.feedback = result.detected_issue
        if state.pose_correct:
            result.events.append(PoseCorrectnessChanged(False))
        return result


class HighKneesAnalyzer(ExerciseAnalyzer):
    """HIIT: high knees, each new knee raise counts once."""

    exercise = ExerciseType.HIIT
    required_joints = ("left_hip", "right_hip", "left_knee", "right_knee")
    visibility_message = "Please face the camera, ensuring hips are visible."
    initial_stage = Stage.DOWN

    def evaluate(self, joints: NamedJointSet, state: SessionState) -> AnalysisResult:
        left_knee_up = joints.left_knee.y < joints.left_hip.y
        right_knee_up = joints.right_knee.y < joints.right_hip.y
        knee_raised = state.stage in (Stage.LEFT_UP, Stage.RIGHT_UP)
        result = AnalysisResult()

        # Both knees up mid-raise: hold the current side
        if left_knee_up and right_knee_up and knee_raised:
            return result

        if left_knee_up and state.stage != Stage.LEFT_UP:
            state.stage = Stage.LEFT_UP
            result.feedback = "Good! Switch."
            result.events.append(RepCompleted())
        elif right_knee_up and state.stage != Stage.RIGHT_UP:
            state.stage = Stage.RIGHT_UP
            result.feedback = "Nice! Switch."
            result.events.append(RepCompleted())
        elif not left_knee_up and not right_knee_up and knee_raised:
            state.stage = Stage.DOWN
            result.feedback = "Drive those knees up!"

        return result


class RunningFormAnalyzer(HoldPoseAnalyzer):
    """Running: upright torso check, feedback only when the verdict flips."""

    exercise = ExerciseType.RUNNING
    required_joints = ("left_shoulder", "left_hip", "left_knee")
    visibility_message = "Please face sideways to the camera for form analysis."

    def evaluate(self, joints: NamedJointSet, state: SessionState) -> AnalysisResult:
        torso_angle = angle_at(joints.left_shoulder, joints.left_hip, joints.left_knee)
        upright = torso_angle >= EXERCISE_THRESHOLDS[self.exercise]["torso_upright"]
        result = AnalysisResult()

        if upright:
            result.detected_issue = "Excellent posture! Keep up the great pace."
        else:
            result.detected_issue = "Slight slouch detected. Try to keep your back straighter."

        if upright != state.pose_correct:
            result.feedback = result.detected_issue
            result.events.append(PoseCorrectnessChanged(upright))

        return result


# ═══════════════════════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════════════════════

_ANALYZERS: Dict[ExerciseType, ExerciseAnalyzer] = {
    analyzer.exercise: analyzer
    for analyzer in (
        BicepCurlAnalyzer(),
        JumpingJackAnalyzer(),
        WarriorPoseAnalyzer(),
        HighKneesAnalyzer(),
        RunningFormAnalyzer(),
    )
}


def get_analyzer(exercise: ExerciseType) -> ExerciseAnalyzer:
    """Get the analyzer for an exercise."""
    return _ANALYZERS[exercise]


def parse_exercise(value: Union[str, ExerciseType]) -> ExerciseType:
    """
    Resolve an exercise identifier such as "Strength" or "yoga".

    Raises:
        ValueError: if the identifier is not a supported exercise
    """
    if isinstance(value, ExerciseType):
        return value
    for exercise in ExerciseType:
        if value == exercise.value or value.lower() == exercise.value.lower():
            return exercise
    raise ValueError(
        f"Invalid exercise type '{value}'. Valid types: {[e.value for e in ExerciseType]}"
    )
