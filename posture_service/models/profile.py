"""
POSTURA Posture Service - User Profile

Body metrics, training background and pain history supplied by the user.
Stored locally and not yet consumed by the rule evaluators.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class TrainingLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class WeightCategory(str, Enum):
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"


class DominantSide(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class PainLevel(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class BodyRegion(str, Enum):
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ARM = "left_arm"
    RIGHT_ARM = "right_arm"
    WAIST = "waist"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"


class PainRegion(BaseModel):
    body_part: BodyRegion
    pain_level: PainLevel = PainLevel.MILD
    diagnosed: bool = False
    diagnosis_detail: Optional[str] = None


class PainProfile(BaseModel):
    regions: List[PainRegion] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("regions")
    @classmethod
    def unique_regions(cls, regions: List[PainRegion]) -> List[PainRegion]:
        seen = set()
        for region in regions:
            if region.body_part in seen:
                raise ValueError(f"Duplicate pain region: {region.body_part.value}")
            seen.add(region.body_part)
        return regions


class UserProfile(BaseModel):
    """Persisted user profile record."""
    height_cm: float = Field(gt=0)
    weight_kg: Optional[float] = Field(default=None, gt=0)
    weight_category: Optional[WeightCategory] = None
    training_level: TrainingLevel = TrainingLevel.INTERMEDIATE
    sport_types: List[str] = Field(default_factory=list)
    dominant_side: Optional[DominantSide] = None
    injury_history: List[str] = Field(default_factory=list)
    pain_profile: Optional[PainProfile] = None
