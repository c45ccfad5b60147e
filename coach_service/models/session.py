"""
LIVECOACH Coach Service - Workout Session Handler

Owns the per-session counters, runs one analysis pass per frame, advances the
hold timer and hands milestones to the coaching policy.
"""

import logging
import threading
import uuid
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence, Union

from core.config import settings

from .coaching import CoachingClient, CoachingTriggerPolicy, MistralCoachingClient
from .exercises import (
    AnalysisResult,
    ExerciseType,
    PoseCorrectnessChanged,
    RepCompleted,
    SessionState,
    get_analyzer,
    parse_exercise,
)
from .pose_frame import Landmark, NamedJointSet, key_angles, pose_summary

logger = logging.getLogger(__name__)


NO_PERSON_FEEDBACK = "No person detected. Position yourself in the camera's view."


class WorkoutSession:
    """
    A single live workout session.

    Frame processing, timer ticks and exercise switches all take the same
    lock, so the session state is never observed half-updated.
    """

    def __init__(
        self,
        exercise: Union[str, ExerciseType],
        coaching_policy: CoachingTriggerPolicy,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())[:8]
        self.exercise = parse_exercise(exercise)
        self.coaching = coaching_policy
        self.state = SessionState.initial(self.exercise)
        self.feedback = "Initializing AI..."
        self.ready = False
        self.frames_processed = 0
        self.key_angles: Dict[str, float] = {}
        self._lock = threading.Lock()

    # ═══════════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════════

    def start(self) -> Dict[str, Any]:
        """Mark the frame stream as live so the hold timer may run."""
        with self._lock:
            self.ready = True
            self.feedback = f"Ready for {self.exercise.value}. Get in position."
            return self._snapshot()

    def stop(self):
        with self._lock:
            self.ready = False

    def switch_exercise(self, exercise: Union[str, ExerciseType]) -> Dict[str, Any]:
        """
        Change the active exercise and reset every counter.

        Raises:
            ValueError: if the exercise identifier is unknown
        """
        new_exercise = parse_exercise(exercise)
        with self._lock:
            self.exercise = new_exercise
            self.state = SessionState.initial(new_exercise)
            self.coaching.reset()
            self.feedback = f"Switched to {new_exercise.value}. Get in position."
            logger.info(f"Session {self.session_id} switched to {new_exercise.value}")
            return self._snapshot()

    # ═══════════════════════════════════════════════════════════════════════════
    # FRAME PROCESSING
    # ═══════════════════════════════════════════════════════════════════════════

    def process_frame(self, landmarks: Optional[Sequence[Optional[Landmark]]]) -> Dict[str, Any]:
        """
        Analyze one frame of pose landmarks.

        Args:
            landmarks: The 33-entry landmark array, or None when no person
                was detected in the frame

        Returns:
            Snapshot of the session after the frame
        """
        with self._lock:
            self.frames_processed += 1

            if not landmarks:
                self.feedback = NO_PERSON_FEEDBACK
                return self._snapshot()

            joints = NamedJointSet.from_landmarks(landmarks)
            self.key_angles = {k: round(v, 1) for k, v in key_angles(joints).items()}

            result = get_analyzer(self.exercise).analyze(joints, self.state)
            self._apply(result)

            request = self.coaching.evaluate(
                self.exercise,
                self.state,
                detected_issue=result.detected_issue,
                pose_summary=pose_summary(joints),
            )
            if request is not None:
                self.coaching.dispatch(request)

            return self._snapshot()

    def _apply(self, result: AnalysisResult):
        """Apply analyzer events to the counters."""
        if result.feedback is not None:
            self.feedback = result.feedback

        for event in result.events:
            if isinstance(event, RepCompleted):
                self.state.rep_count += 1
                logger.debug(f"Session {self.session_id}: rep {self.state.rep_count}")
            elif isinstance(event, PoseCorrectnessChanged):
                self.state.pose_correct = event.correct
                if not event.correct:
                    self.state.hold_seconds = 0

    # ═══════════════════════════════════════════════════════════════════════════
    # HOLD TIMER
    # ═══════════════════════════════════════════════════════════════════════════

    def tick(self) -> int:
        """
        Advance the hold timer by one second.

        Only counts for hold-type exercises while the session is ready and
        the pose is correct; an incorrect pose resets the timer to zero.

        Returns:
            The current hold time in seconds
        """
        with self._lock:
            if not self.exercise.is_hold_type:
                return self.state.hold_seconds

            if not self.state.pose_correct:
                self.state.hold_seconds = 0
            elif self.ready:
                self.state.hold_seconds += 1

            return self.state.hold_seconds

    # ═══════════════════════════════════════════════════════════════════════════
    # STATUS
    # ═══════════════════════════════════════════════════════════════════════════

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> Dict[str, Any]:
        state = asdict(self.state)
        state["stage"] = self.state.stage.value
        return {
            "session_id": self.session_id,
            "exercise": self.exercise.value,
            "is_hold_type": self.exercise.is_hold_type,
            "ready": self.ready,
            "feedback": self.feedback,
            **state,
            "key_angles": self.key_angles,
            "coach_message": self.coaching.message,
            "coaching_in_flight": self.coaching.in_flight,
        }


class WorkoutSessionHandler:
    """
    Keeps track of live workout sessions.

    Every session gets its own coaching policy; all of them share one
    coaching client.
    """

    def __init__(self, coaching_client: Optional[CoachingClient] = None, max_sessions: Optional[int] = None):
        self.coaching_client = coaching_client or MistralCoachingClient()
        self.max_sessions = max_sessions or settings.MAX_SESSIONS
        self.active_sessions: Dict[str, WorkoutSession] = {}

    def create_session(self, exercise: Union[str, ExerciseType]) -> WorkoutSession:
        """
        Create a new workout session.

        Raises:
            ValueError: if the exercise is unknown
            RuntimeError: if the session limit is reached
        """
        if len(self.active_sessions) >= self.max_sessions:
            raise RuntimeError("Maximum sessions reached")

        session = WorkoutSession(
            exercise=exercise,
            coaching_policy=CoachingTriggerPolicy(self.coaching_client),
        )
        self.active_sessions[session.session_id] = session
        logger.info(f"🏋️ Session {session.session_id} created ({session.exercise.value})")
        return session

    def get_session(self, session_id: str) -> Optional[WorkoutSession]:
        """Get session by ID."""
        return self.active_sessions.get(session_id)

    def list_sessions(self) -> List[Dict[str, Any]]:
        return [s.snapshot() for s in self.active_sessions.values()]

    def cleanup_session(self, session_id: str) -> bool:
        """Remove session from active sessions."""
        session = self.active_sessions.pop(session_id, None)
        if session is None:
            return False
        session.stop()
        logger.info(f"Session {session_id} removed")
        return True


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_handler_instance: Optional[WorkoutSessionHandler] = None

def get_session_handler() -> WorkoutSessionHandler:
    """Get or create the global session handler instance."""
    global _handler_instance
    if _handler_instance is None:
        _handler_instance = WorkoutSessionHandler()
    return _handler_instance
