"""Result data structures produced by the visual runner."""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, Field

from src.models.visual import ChangeExplanation, ReadinessOutcome, TextDifference


class Attachment(BaseModel):
    name: str
    path: str
    content_type: str = "image/png"


class VisualTestResult(BaseModel):
    test_name: str
    device: str
    url: str = ""
    selector: Optional[str] = None
    result: str  # pass, skip, baseline, error
    duration_seconds: float = 0.0
    failure_reason: Optional[str] = None
    mismatch_percent: Optional[float] = None
    tolerance: Optional[float] = None
    comparison_available: bool = True
    current_path: str = ""
    baseline_path: str = ""
    diff_path: Optional[str] = None
    image_url: str = ""
    text_differences: list[TextDifference] = Field(default_factory=list)
    explanation: Optional[Union[ChangeExplanation, str]] = None
    readiness: Optional[ReadinessOutcome] = None
    attachments: list[Attachment] = Field(default_factory=list)

    def attach(self, name: str, path: str, content_type: str = "image/png") -> None:
        """Attach an artifact to this result for the run report."""
        self.attachments.append(Attachment(name=name, path=path, content_type=content_type))


class RunResult(BaseModel):
    run_id: str
    device: str
    mode: str = "validate"  # setup, validate
    started_at: str
    completed_at: str
    ci: bool = False
    total_tests: int = 0
    passed: int = 0
    skipped: int = 0
    baselines_created: int = 0
    errors: int = 0
    duration_seconds: float = 0.0
    test_results: list[VisualTestResult] = Field(default_factory=list)
