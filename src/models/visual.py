"""Data structures produced by the readiness detector, diff engine and explanation chain."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ReadinessOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    satisfied: bool
    elapsed_ms: int
    reason: str
    signals: dict[str, bool] = Field(default_factory=dict)  # signal name -> settled in time


class TextDifference(BaseModel):
    line_index: int  # zero-based
    baseline_line: Optional[str] = None
    current_line: Optional[str] = None  # None when the current text has no such line


class DiffCluster(BaseModel):
    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left + 1

    @property
    def height(self) -> int:
        return self.bottom - self.top + 1


class DiffResult(BaseModel):
    mismatch_percent: float = Field(0.0, ge=0, le=100)
    different_pixel_count: Optional[int] = None
    total_pixel_count: Optional[int] = None
    diff_artifact_path: Optional[str] = None
    equal: bool = True
    # False when the pixel provider produced no usable counts; mismatch is then reported as 0.
    comparison_available: bool = True
    clusters: list[DiffCluster] = Field(default_factory=list)
    text_differences: list[TextDifference] = Field(default_factory=list)


class ChangeItem(BaseModel):
    model_config = ConfigDict(strict=True)

    location: str
    baseline_state: str
    current_state: str
    description: str


class ChangeExplanation(BaseModel):
    model_config = ConfigDict(strict=True)

    changes: list[ChangeItem]
