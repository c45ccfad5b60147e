"""
LIVECOACH Coach Service - Pose Frame Adapter

Converts the detector's per-frame landmark array into the named joint set
used by the exercise analyzers, plus the key-angle summary sent to the coach.
"""

import math
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from .geometry import angle_at


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS AND DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class JointType(Enum):
    """Body joint indices of the 33-point pose landmark model."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


NUM_LANDMARKS = len(JointType)


@dataclass(frozen=True)
class Landmark:
    """A single pose landmark with 3D coordinates and visibility."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0


@dataclass(frozen=True)
class NamedJointSet:
    """The joints the exercise analyzers work with, keyed by anatomical role."""
    left_shoulder: Optional[Landmark] = None
    right_shoulder: Optional[Landmark] = None
    left_elbow: Optional[Landmark] = None
    right_elbow: Optional[Landmark] = None
    left_wrist: Optional[Landmark] = None
    right_wrist: Optional[Landmark] = None
    left_hip: Optional[Landmark] = None
    right_hip: Optional[Landmark] = None
    left_knee: Optional[Landmark] = None
    right_knee: Optional[Landmark] = None
    left_ankle: Optional[Landmark] = None
    right_ankle: Optional[Landmark] = None

    @classmethod
    def from_landmarks(cls, landmarks: Sequence[Optional[Landmark]]) -> "NamedJointSet":
        """Pick the named joints out of a raw landmark array by fixed index."""
        def get(joint: JointType) -> Optional[Landmark]:
            if joint.value < len(landmarks):
                return landmarks[joint.value]
            return None

        return cls(**{f.name: get(JointType[f.name.upper()]) for f in fields(cls)})

    def visible(self, *roles: str, threshold: float = 0.7) -> bool:
        """True when every named role is present with visibility >= threshold."""
        for role in roles:
            landmark = getattr(self, role)
            if landmark is None or landmark.visibility < threshold:
                return False
        return True


# ═══════════════════════════════════════════════════════════════════════════════
# KEY ANGLES
# ═══════════════════════════════════════════════════════════════════════════════

def key_angles(joints: NamedJointSet) -> Dict[str, float]:
    """Elbow and knee angles for both sides, in degrees."""
    return {
        "left_arm": angle_at(joints.left_shoulder, joints.left_elbow, joints.left_wrist),
        "right_arm": angle_at(joints.right_shoulder, joints.right_elbow, joints.right_wrist),
        "left_leg": angle_at(joints.left_hip, joints.left_knee, joints.left_ankle),
        "right_leg": angle_at(joints.right_hip, joints.right_knee, joints.right_ankle),
    }


def _round_degrees(value: float) -> int:
    # Halves round up (90.5 -> 91), not to even
    return int(math.floor(value + 0.5))


def pose_summary(joints: NamedJointSet) -> str:
    """Human-readable key-angle summary handed to the coaching service."""
    angles = {name: _round_degrees(value) for name, value in key_angles(joints).items()}
    return (
        f"Key Angles: L-Arm({angles['left_arm']}°), "
        f"R-Arm({angles['right_arm']}°), "
        f"L-Leg({angles['left_leg']}°), "
        f"R-Leg({angles['right_leg']}°)"
    )


# ═══════════════════════════════════════════════════════════════════════════════
# WIRE FORMAT
# ═══════════════════════════════════════════════════════════════════════════════

class LandmarkPayload(BaseModel):
    """One landmark as sent by the client-side pose detector."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = Field(default=0.0, ge=0.0, le=1.0)


def parse_landmarks(payload: Optional[List[Any]]) -> Optional[List[Optional[Landmark]]]:
    """
    Convert a JSON landmark array into Landmark objects.

    Returns None when the payload reports no person (null or empty list).
    Entries that are null or fail validation become absent joints.
    """
    if not payload:
        return None

    landmarks: List[Optional[Landmark]] = []
    for entry in payload[:NUM_LANDMARKS]:
        if entry is None:
            landmarks.append(None)
            continue
        try:
            lm = LandmarkPayload.model_validate(entry)
        except ValidationError:
            landmarks.append(None)
            continue
        landmarks.append(Landmark(x=lm.x, y=lm.y, z=lm.z, visibility=lm.visibility))

    return landmarks
