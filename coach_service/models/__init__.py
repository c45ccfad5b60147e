"""
LIVECOACH Coach Service Models

Rule-based exercise analysis on streamed pose landmarks, with milestone-driven
AI coaching.
"""

from .geometry import angle_at

from .pose_frame import (
    JointType,
    Landmark,
    NamedJointSet,
    key_angles,
    pose_summary,
    parse_landmarks,
)

from .exercises import (
    ExerciseType,
    Stage,
    SessionState,
    RepCompleted,
    PoseCorrectnessChanged,
    AnalysisResult,
    ExerciseAnalyzer,
    get_analyzer,
    parse_exercise,
)

from .coaching import (
    CoachingRequest,
    CoachingError,
    CoachingConfigurationError,
    CoachingUnavailableError,
    CoachingTriggerPolicy,
    MistralCoachingClient,
)

from .session import (
    WorkoutSession,
    WorkoutSessionHandler,
    get_session_handler,
)

__all__ = [
    # Geometry
    "angle_at",
    # Pose frame
    "JointType",
    "Landmark",
    "NamedJointSet",
    "key_angles",
    "pose_summary",
    "parse_landmarks",
    # Exercises
    "ExerciseType",
    "Stage",
    "SessionState",
    "RepCompleted",
    "PoseCorrectnessChanged",
    "AnalysisResult",
    "ExerciseAnalyzer",
    "get_analyzer",
    "parse_exercise",
    # Coaching
    "CoachingRequest",
    "CoachingError",
    "CoachingConfigurationError",
    "CoachingUnavailableError",
    "CoachingTriggerPolicy",
    "MistralCoachingClient",
    # Session
    "WorkoutSession",
    "WorkoutSessionHandler",
    "get_session_handler",
]
