"""
Shared fixtures for the coach service tests.

Builds synthetic 33-point landmark frames in normalized image coordinates
(y grows downwards, like the detector output).
"""

import asyncio
import math
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add backend to path
backend_dir = Path(__file__).parent.parent.parent
sys.path.insert(0, str(backend_dir))

from coach_service.models import JointType, Landmark
from coach_service.models.coaching import CoachingRequest


def ray_point(vertex: Landmark, angle_deg: float, length: float = 0.2, visibility: float = 1.0) -> Landmark:
    """
    Point that makes `angle_deg` at `vertex` with a ray pointing straight up.

    Use it with the first point placed directly above the vertex.
    """
    rad = math.radians(angle_deg)
    return Landmark(
        x=vertex.x + length * math.sin(rad),
        y=vertex.y - length * math.cos(rad),
        visibility=visibility,
    )


def make_frame(joints: Dict[JointType, Optional[Landmark]], fill: bool = True) -> List[Optional[Landmark]]:
    """Build a full landmark array; unspecified joints are filled at the centre."""
    default = Landmark(x=0.5, y=0.5, visibility=1.0) if fill else None
    frame: List[Optional[Landmark]] = [default] * len(JointType)
    for joint, landmark in joints.items():
        frame[joint.value] = landmark
    return frame


def curl_frame(elbow_angle: float, visibility: float = 1.0) -> List[Optional[Landmark]]:
    """Left arm bent to the given elbow angle."""
    shoulder = Landmark(x=0.5, y=0.3, visibility=visibility)
    elbow = Landmark(x=0.5, y=0.5, visibility=visibility)
    wrist = ray_point(elbow, elbow_angle, visibility=visibility)
    return make_frame({
        JointType.LEFT_SHOULDER: shoulder,
        JointType.LEFT_ELBOW: elbow,
        JointType.LEFT_WRIST: wrist,
    })


def jack_frame(legs_apart: bool, arms_up: bool) -> List[Optional[Landmark]]:
    """Jumping-jack pose facing the camera."""
    wrist_y = 0.1 if arms_up else 0.5
    ankle_offset = 0.2 if legs_apart else 0.05
    return make_frame({
        JointType.LEFT_SHOULDER: Landmark(x=0.45, y=0.3),
        JointType.RIGHT_SHOULDER: Landmark(x=0.55, y=0.3),
        JointType.LEFT_WRIST: Landmark(x=0.35, y=wrist_y),
        JointType.RIGHT_WRIST: Landmark(x=0.65, y=wrist_y),
        JointType.LEFT_HIP: Landmark(x=0.45, y=0.6),
        JointType.RIGHT_HIP: Landmark(x=0.55, y=0.6),
        JointType.LEFT_ANKLE: Landmark(x=0.5 - ankle_offset, y=0.9),
        JointType.RIGHT_ANKLE: Landmark(x=0.5 + ankle_offset, y=0.9),
    })


def warrior_frame(knee_angle: float, arms_straight: bool = True) -> List[Optional[Landmark]]:
    """Warrior pose seen from the side with the front knee at `knee_angle`."""
    left_shoulder = Landmark(x=0.4, y=0.3)
    right_shoulder = Landmark(x=0.5, y=0.3)
    # Straight: wrist continues the shoulder line. Bent: wrist hangs down.
    left_wrist = Landmark(x=0.1, y=0.3) if arms_straight else Landmark(x=0.4, y=0.6)
    hip = Landmark(x=0.4, y=0.5)
    knee = Landmark(x=0.4, y=0.7)
    return make_frame({
        JointType.LEFT_SHOULDER: left_shoulder,
        JointType.RIGHT_SHOULDER: right_shoulder,
        JointType.LEFT_WRIST: left_wrist,
        JointType.LEFT_HIP: hip,
        JointType.LEFT_KNEE: knee,
        JointType.LEFT_ANKLE: ray_point(knee, knee_angle),
    })


def knees_frame(left_up: bool, right_up: bool) -> List[Optional[Landmark]]:
    """High-knees pose; a raised knee sits above its hip."""
    return make_frame({
        JointType.LEFT_HIP: Landmark(x=0.45, y=0.6),
        JointType.RIGHT_HIP: Landmark(x=0.55, y=0.6),
        JointType.LEFT_KNEE: Landmark(x=0.45, y=0.5 if left_up else 0.8),
        JointType.RIGHT_KNEE: Landmark(x=0.55, y=0.5 if right_up else 0.8),
    })


def running_frame(torso_angle: float) -> List[Optional[Landmark]]:
    """Runner seen from the side with the shoulder-hip-knee angle given."""
    hip = Landmark(x=0.5, y=0.5)
    return make_frame({
        JointType.LEFT_SHOULDER: Landmark(x=0.5, y=0.2),
        JointType.LEFT_HIP: hip,
        JointType.LEFT_KNEE: ray_point(hip, torso_angle, length=0.3),
    })


class FakeCoachingClient:
    """Coaching client that records requests and can be held open."""

    def __init__(self, reply: str = "Keep your elbows tucked.", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.requests: List[CoachingRequest] = []
        self.gate: Optional[asyncio.Event] = None

    def hold(self):
        """Block responses until `release` is called (must run inside a loop)."""
        self.gate = asyncio.Event()

    def release(self):
        if self.gate is not None:
            self.gate.set()

    async def request_coaching(self, request: CoachingRequest) -> str:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def fake_client():
    return FakeCoachingClient()
