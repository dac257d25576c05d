"""Tuning configuration for numdrill."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator


class XPPipeline(str, Enum):
    BONUS = "bonus"  # in-game XP + flat bonuses (canonical)
    MULTIPLIER = "multiplier"  # base XP through mode/excellence/elite multipliers


class AdaptiveConfig(BaseModel):
    target_time_ms: int = 3000
    expected_performance: float = 0.75
    history_window: int = 20
    good_time_factor: float = 1.25
    poor_time_factor: float = 2.0
    good_streak_to_step_up: int = 3
    poor_streak_to_step_down: int = 2
    max_difficulty_step: int = 4
    base_k: int = 6
    initial_skill_rating: float = 50.0


class GeneratorConfig(BaseModel):
    max_attempts: int = Field(default=50, ge=1)
    history_window: int = 10
    base_target_times_ms: dict[str, int] = Field(default_factory=lambda: {
        "add": 2000,
        "sub": 2500,
        "mul": 4000,
        "div": 5000,
        "percent": 5500,
        "multi": 8000,
    })
    target_time_level_factor: float = 0.03
    dp_operation_bonus: dict[str, int] = Field(default_factory=lambda: {
        "add": 0,
        "sub": 1,
        "mul": 3,
        "div": 4,
        "percent": 5,
        "multi": 7,
    })


class FluencyWeights(BaseModel):
    accuracy: float = 0.35
    speed: float = 0.25
    throughput: float = 0.25
    consistency: float = 0.15

    @model_validator(mode="after")
    def _sum_to_one(self) -> "FluencyWeights":
        total = self.accuracy + self.speed + self.throughput + self.consistency
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"fluency weights must sum to 1.0, got {total}")
        return self


class FluencyConfig(BaseModel):
    target_time_ms: int = 1600
    reference_variability_ms: int = 600
    target_qps: float = 0.28
    weights: FluencyWeights = Field(default_factory=FluencyWeights)
    accuracy_floor: float = 0.55
    cap_below_accuracy_floor: float = 45
    empty_median_ms: int = 99999


class ExcellenceThresholds(BaseModel):
    accuracy: float = 0.90
    speed_score: float = 0.95
    consistency: float = 0.75
    throughput: float = 0.85


class EliteThresholds(BaseModel):
    accuracy: float = 0.98
    speed_score: float = 0.97
    consistency: float = 0.80
    throughput: float = 1.00
    min_questions: int = 45
    min_duration_sec: float = 60


class AnswerXPConfig(BaseModel):
    base: int = 10
    fast_bonus_ms: int = 2000
    very_fast_bonus_ms: int = 1000
    speed_bonus: int = 5
    streak_step: float = 0.1
    streak_cap: float = 2.0
    tier_multipliers: dict[str, float] = Field(default_factory=lambda: {
        "review": 0.5,
        "core": 1.0,
        "stretch": 1.5,
    })


class XPConfig(BaseModel):
    pipeline: XPPipeline = XPPipeline.BONUS
    min_questions: int = 8
    min_duration_sec: float = 20
    base_xp: int = 10
    max_performance_xp: int = 220
    max_effort_xp: int = 80
    effort_target_questions: int = 35
    invalid_session_fraction: float = 0.25
    mode_multipliers: dict[str, float] = Field(default_factory=lambda: {
        "daily": 1.0,
        "quick_fire": 0.55,
        "practice": 0.7,
        "skill_drill": 0.7,
        "unlimited": 0.4,
        "assessment": 0.0,
    })
    excellence: ExcellenceThresholds = Field(default_factory=ExcellenceThresholds)
    excellence_multiplier: float = 1.25
    excellence_high_accuracy: float = 0.95
    excellence_high_accuracy_multiplier: float = 1.35
    elite: EliteThresholds = Field(default_factory=EliteThresholds)
    elite_multiplier: float = 2.0
    excellence_bonus_xp: int = 50
    excellence_high_accuracy_bonus_xp: int = 100
    elite_bonus_xp: int = 150
    answer: AnswerXPConfig = Field(default_factory=AnswerXPConfig)

    def mode_multiplier(self, session_type: str) -> float:
        return self.mode_multipliers.get(str(session_type), 1.0)


class LevelCurveConfig(BaseModel):
    early_requirement: int = 500  # levels 1-4
    early_last_level: int = 4
    level5_requirement: int = 1000
    increment_start: int = 120  # added at level 6
    growth_stage1: int = 15  # increment growth through stage2_start - 1
    growth_stage2: int = 25
    stage2_start: int = 15


class SpeedNudge(BaseModel):
    fast_threshold_ms: int = 1300
    fast_accuracy_min: float = 0.80
    slow_threshold_ms: int = 2600


class PlacementConfig(BaseModel):
    assessment_duration_minutes: int = 3
    min_answers: int = 12
    empty_median_ms: int = 99999
    max_start_level: int = 30
    cpm_bands: list[float] = Field(default_factory=lambda: [4, 6, 8, 10, 12, 14, 16, 18, 20])
    # (accuracy upper bound, group cap); accuracy at or above every bound gets default_cap
    accuracy_caps: list[tuple[float, int]] = Field(
        default_factory=lambda: [(0.55, 3), (0.65, 5), (0.75, 7)]
    )
    default_cap: int = 10
    speed_nudge: SpeedNudge = Field(default_factory=SpeedNudge)
    group_to_level: dict[int, int] = Field(default_factory=lambda: {
        1: 1, 2: 2, 3: 4, 4: 6, 5: 8, 6: 10, 7: 12, 8: 16, 9: 22, 10: 30,
    })

    @model_validator(mode="after")
    def _nine_bands(self) -> "PlacementConfig":
        if len(self.cpm_bands) != 9:
            raise ValueError("cpm_bands must hold 9 thresholds (10 groups)")
        return self


class Settings(BaseModel):
    adaptive: AdaptiveConfig = Field(default_factory=AdaptiveConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    fluency: FluencyConfig = Field(default_factory=FluencyConfig)
    xp: XPConfig = Field(default_factory=XPConfig)
    levels: LevelCurveConfig = Field(default_factory=LevelCurveConfig)
    placement: PlacementConfig = Field(default_factory=PlacementConfig)
    data_dir: Path = Path.home() / ".numdrill"

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        config_path = config_path or (Path.home() / ".numdrill" / "config.yaml")
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        return cls()

    def save(self, config_path: Optional[Path] = None) -> Path:
        config_path = config_path or (self.data_dir / "config.yaml")
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)
        return config_path
