"""
LIVECOACH Coach Service - AI Coaching

Milestone-based trigger policy with a single in-flight request slot, and the
Mistral chat-completions client that produces the coaching tip.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import aiohttp

from core.config import settings

from .exercises import ExerciseType, SessionState

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# DATA CLASSES AND ERRORS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CoachingRequest:
    """Context sent to the coaching service when a milestone is reached."""
    exercise: ExerciseType
    detected_issue: str
    pose_summary: str
    reps: Optional[int] = None
    hold_seconds: Optional[int] = None


class CoachingError(Exception):
    """Base class for coaching collaborator failures."""


class CoachingConfigurationError(CoachingError):
    """The coaching service is not configured (e.g. missing API key)."""


class CoachingUnavailableError(CoachingError):
    """The coaching service failed, timed out or returned nothing usable."""


class CoachingClient(Protocol):
    async def request_coaching(self, request: CoachingRequest) -> str:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# MISTRAL CLIENT
# ═══════════════════════════════════════════════════════════════════════════════

class MistralCoachingClient:
    """
    Client for the Mistral chat-completions API.

    API Documentation: https://docs.mistral.ai/api/
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the Mistral client.

        Args:
            api_key: Mistral API key (uses MISTRAL_API_KEY setting if not provided)
            api_url: Chat-completions endpoint
            model: Model name
            timeout: Total request timeout in seconds
        """
        self.api_key = api_key or settings.MISTRAL_API_KEY
        self.api_url = api_url or settings.MISTRAL_API_URL
        self.model = model or settings.MISTRAL_MODEL
        self.timeout = timeout or settings.COACHING_TIMEOUT_SECONDS

    @staticmethod
    def build_messages(request: CoachingRequest) -> List[Dict[str, str]]:
        """Build the single user message describing the athlete's situation."""
        status = []
        if request.reps is not None:
            status.append(f"They are on rep {request.reps}.")
        if request.hold_seconds is not None:
            status.append(f"They have been holding the pose for {request.hold_seconds} seconds.")

        content = (
            f"You are an expert AI fitness coach. A user is performing the "
            f"'{request.exercise.value}' exercise.\n\n"
            f"Their current status:\n"
            f"- {' '.join(status)}\n"
            f"- The form analysis detected this situation: \"{request.detected_issue}\".\n"
            f"- Pose data: {request.pose_summary}\n\n"
            f"Give one brief, encouraging and specific coaching tip that addresses "
            f"the detected situation directly. Do not be generic. Maximum 2 sentences."
        )
        return [{"role": "user", "content": content}]

    async def request_coaching(self, request: CoachingRequest) -> str:
        """
        Ask the model for a coaching tip.

        Raises:
            CoachingConfigurationError: no API key is configured
            CoachingUnavailableError: the call failed or returned no text
        """
        if not self.api_key:
            raise CoachingConfigurationError("MISTRAL_API_KEY is not set")

        body = {
            "model": self.model,
            "messages": self.build_messages(request),
            "max_tokens": settings.MISTRAL_MAX_TOKENS,
            "temperature": settings.MISTRAL_TEMPERATURE,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.api_url, json=body, headers=headers) as response:
                    if response.status != 200:
                        detail = await response.text()
                        raise CoachingUnavailableError(
                            f"Mistral API error: {response.status} {detail[:200]}"
                        )
                    data = await response.json()
        except aiohttp.ClientError as e:
            raise CoachingUnavailableError(f"Network error: {e}") from e
        except asyncio.TimeoutError as e:
            raise CoachingUnavailableError("Mistral API request timed out") from e

        return self._extract_content(data)

    @staticmethod
    def _extract_content(data: Dict[str, Any]) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise CoachingUnavailableError("No response from AI") from e

        if not content or not content.strip():
            raise CoachingUnavailableError("Empty response from AI")
        return content.strip()


# ═══════════════════════════════════════════════════════════════════════════════
# TRIGGER POLICY
# ═══════════════════════════════════════════════════════════════════════════════

class CoachingTriggerPolicy:
    """
    Decides when to ask for AI coaching and keeps at most one request in flight.

    Milestones:
    - Strength: every `rep_interval` reps
    - Yoga / Running: every bucket of held seconds

    A milestone is marked on the session state as soon as it is reached, even
    when the request is then dropped because another one is still running.
    """

    STRENGTH_ISSUE = "User successfully completed a set of {interval} reps."

    def __init__(
        self,
        client: CoachingClient,
        rep_interval: Optional[int] = None,
        time_buckets: Optional[Dict[ExerciseType, int]] = None,
    ):
        self.client = client
        self.rep_interval = rep_interval or settings.REP_COACHING_INTERVAL
        self.time_buckets = time_buckets or {
            ExerciseType.YOGA: settings.YOGA_COACHING_BUCKET,
            ExerciseType.RUNNING: settings.RUNNING_COACHING_BUCKET,
        }

        self.message = ""
        self._in_flight = False
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

        # Stats
        self.dispatched_count = 0
        self.dropped_count = 0
        self.failed_count = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    # ═══════════════════════════════════════════════════════════════════════════
    # MILESTONES
    # ═══════════════════════════════════════════════════════════════════════════

    def evaluate(
        self,
        exercise: ExerciseType,
        state: SessionState,
        detected_issue: str,
        pose_summary: str,
    ) -> Optional[CoachingRequest]:
        """
        Check the current counters for a new milestone.

        Returns a CoachingRequest and records the milestone in
        `state.last_trigger_mark`, or None when nothing is due.
        """
        if exercise == ExerciseType.STRENGTH:
            reps = state.rep_count
            if reps > 0 and reps % self.rep_interval == 0 and reps != state.last_trigger_mark:
                state.last_trigger_mark = reps
                return CoachingRequest(
                    exercise=exercise,
                    reps=reps,
                    detected_issue=self.STRENGTH_ISSUE.format(interval=self.rep_interval),
                    pose_summary=pose_summary,
                )
            return None

        bucket = self.time_buckets.get(exercise)
        if bucket is None:
            return None

        seconds = state.hold_seconds
        mark = seconds // bucket
        if seconds > 0 and seconds % bucket == 0 and mark != state.last_trigger_mark:
            state.last_trigger_mark = mark
            return CoachingRequest(
                exercise=exercise,
                hold_seconds=seconds,
                detected_issue=detected_issue,
                pose_summary=pose_summary,
            )
        return None

    # ═══════════════════════════════════════════════════════════════════════════
    # DISPATCH
    # ═══════════════════════════════════════════════════════════════════════════

    def dispatch(self, request: CoachingRequest) -> bool:
        """
        Start a coaching request if the slot is free.

        Returns True if the request was started. Requests arriving while one
        is in flight are dropped, not queued.
        """
        if self._in_flight:
            self.dropped_count += 1
            logger.debug(f"Coaching request for {request.exercise.value} dropped (in flight)")
            return False

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, coaching request skipped")
            self.dropped_count += 1
            return False

        self._in_flight = True
        self.dispatched_count += 1
        self._task = loop.create_task(self._run(request, self._generation))
        logger.info(
            f"🤖 Coaching requested: {request.exercise.value} "
            f"(reps={request.reps}, hold={request.hold_seconds})"
        )
        return True

    async def _run(self, request: CoachingRequest, generation: int):
        message = ""
        try:
            message = await self.client.request_coaching(request)
        except CoachingConfigurationError as e:
            self.failed_count += 1
            logger.error(f"Coaching service not configured: {e}")
        except Exception as e:
            self.failed_count += 1
            logger.warning(f"Coaching unavailable: {type(e).__name__}: {e}")
        finally:
            self._in_flight = False

        # A reset while the request was running makes its answer stale
        if generation == self._generation:
            self.message = message

    async def wait(self):
        """Wait for the in-flight request, if any, to finish."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def reset(self):
        """Forget the current message; answers to earlier requests are ignored."""
        self._generation += 1
        self.message = ""

    def get_stats(self) -> dict:
        return {
            "in_flight": self._in_flight,
            "dispatched": self.dispatched_count,
            "dropped": self.dropped_count,
            "failed": self.failed_count,
        }
