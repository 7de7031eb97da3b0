"""Configuration models for the visual regression validator."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

Device = Literal["desktop", "mobile"]

_TRUTHY = ("1", "true", "yes", "on")


def _resolve_env_reference(v):
    if isinstance(v, str) and v.startswith("env:"):
        env_var = v[4:]
        resolved = os.environ.get(env_var)
        if resolved is None:
            raise ValueError(f"Environment variable '{env_var}' not set")
        return resolved
    return v


class ViewportConfig(BaseModel):
    width: int = 1280
    height: int = 720
    is_mobile: bool = False
    device_scale_factor: float = 1


class VisualTarget(BaseModel):
    """One page (or element of a page) under visual test."""
    name: str  # test title, e.g. "Computers page Upper Header - Desktop - Validate Mismatch"
    url: str
    selector: Optional[str] = None  # element-scoped capture when set
    full_page: bool = True
    devices: list[Device] = Field(default_factory=lambda: ["desktop", "mobile"])


class ReadinessConfig(BaseModel):
    overall_timeout_ms: int = 30000
    network_timeout_ms: int = 15000
    network_poll_ms: int = 100
    network_settle_ms: int = 200
    loader_timeout_ms: int = 10000
    loader_poll_ms: int = 200
    loader_selectors: list[str] = Field(
        default_factory=lambda: [
            '[aria-busy="true"]',
            ".loading",
            ".loader",
            ".spinner",
            ".skeleton",
            "#loading",
        ]
    )
    animation_timeout_ms: int = 5000
    animation_poll_ms: int = 100
    stability_duration_ms: int = 500
    stability_max_wait_ms: int = 5000
    image_timeout_ms: int = 10000


class PixelDiffConfig(BaseModel):
    strict: bool = False
    tolerance: float = 1.0  # CIEDE2000 colour distance below which pixels count as equal
    antialiasing_tolerance: float = 0
    ignore_antialiasing: bool = True
    ignore_caret: bool = True
    pixel_ratio: float = 1
    should_cluster: bool = True
    clusters_size: int = 10
    highlight_color: tuple[int, int, int] = (255, 0, 255)


class OCRConfig(BaseModel):
    enabled: bool = True
    lang: str = "eng"


class ExplanationConfig(BaseModel):
    enabled: bool = True
    # Tried in order; the first provider whose API key is configured wins.
    providers: list[Literal["gemini", "anthropic"]] = Field(
        default_factory=lambda: ["gemini", "anthropic"]
    )
    gemini_model: str = "gemini-2.5-pro"
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 1500


class LedgerConfig(BaseModel):
    ci: bool = False
    db_file: str = "visual.db"
    verbose: bool = False

    def resolve_db_path(self, device: str) -> Path:
        """One ledger file per device in CI, one shared file otherwise."""
        if self.ci:
            return Path(f"visual_{device}.db")
        return Path(self.db_file)

    def resolve_index_path(self, device: str) -> Path:
        if self.ci:
            return Path(f"baseline-{device}.json")
        return Path("baseline.json")


class StorageConfig(BaseModel):
    supabase_url: str = ""
    supabase_token: str = ""
    bucket_name: str = ""
    storage_url: str = ""  # public URL prefix for uploaded diff images

    @field_validator("supabase_url", "supabase_token", mode="before")
    @classmethod
    def resolve_env_secret(cls, v: str) -> str:
        return _resolve_env_reference(v)

    @property
    def enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_token and self.bucket_name)

    @property
    def public_url(self) -> str:
        if self.storage_url:
            return self.storage_url.rstrip("/")
        if self.supabase_url and self.bucket_name:
            return f"{self.supabase_url.rstrip('/')}/storage/v1/object/public/{self.bucket_name}"
        return ""


class FrameworkConfig(BaseModel):
    # Targets
    targets: list[VisualTarget] = Field(default_factory=list)
    device: Device = "desktop"
    viewports: dict[str, ViewportConfig] = Field(
        default_factory=lambda: {
            "desktop": ViewportConfig(width=1280, height=720),
            "mobile": ViewportConfig(width=375, height=812, is_mobile=True, device_scale_factor=1),
        }
    )
    headless: bool = True

    # Comparison policy
    mismatch_threshold: float = 1.0  # percent
    screenshots_dir: str = "screenshots"
    pixel_diff: PixelDiffConfig = Field(default_factory=PixelDiffConfig)
    readiness: ReadinessConfig = Field(default_factory=ReadinessConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    explanation: ExplanationConfig = Field(default_factory=ExplanationConfig)

    # Persistence
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    # Execution
    max_parallel_contexts: int = 1

    # Reporting
    report_formats: list[str] = Field(default_factory=lambda: ["html", "json", "markdown"])
    report_output_dir: str = "./visual-report"

    @field_validator("mismatch_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0 <= v <= 100:
            raise ValueError("mismatch_threshold must be a percentage between 0 and 100")
        return v

    def model_post_init(self, __context) -> None:
        if self.pixel_diff.strict:
            self.pixel_diff.ignore_antialiasing = False
            self.pixel_diff.ignore_caret = False

    def apply_env(self, environ: dict[str, str] | None = None) -> "FrameworkConfig":
        """Overlay environment variables onto the loaded config."""
        env = os.environ if environ is None else environ
        if "CI" in env:
            self.ledger.ci = env["CI"].strip().lower() in _TRUTHY
        if env.get("DEVICE_TYPE"):
            device = env["DEVICE_TYPE"].strip().lower()
            if device not in ("desktop", "mobile"):
                raise ValueError(f"Unsupported DEVICE_TYPE: {env['DEVICE_TYPE']}")
            self.device = device
        if env.get("MISMATCH_THRESHOLD"):
            self.mismatch_threshold = float(env["MISMATCH_THRESHOLD"])
            self.pixel_diff.tolerance = self.mismatch_threshold
        if env.get("DB_FILE"):
            self.ledger.db_file = env["DB_FILE"]
        if "DB_VERBOSE" in env:
            self.ledger.verbose = env["DB_VERBOSE"] == "true"
        if env.get("STORAGE_URL"):
            self.storage.storage_url = env["STORAGE_URL"]
        if env.get("SUPABASE_URL"):
            self.storage.supabase_url = env["SUPABASE_URL"]
        if env.get("SUPABASE_TOKEN"):
            self.storage.supabase_token = env["SUPABASE_TOKEN"]
        if env.get("SUPABASE_BUCKET_NAME"):
            self.storage.bucket_name = env["SUPABASE_BUCKET_NAME"]
        if "AI_EXPLANATION_ENABLED" in env:
            self.explanation.enabled = env["AI_EXPLANATION_ENABLED"].strip().lower() in _TRUTHY
        return self

    def viewport_for(self, device: str) -> ViewportConfig:
        return self.viewports.get(device, ViewportConfig())

    def targets_for(self, device: str) -> list[VisualTarget]:
        return [t for t in self.targets if device in t.devices]

    @classmethod
    def load(cls, path: str | Path) -> "FrameworkConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
