"""Shared screenshot path utilities: sanitize test names and derive the on-disk layout.

Layout: ``screenshots/{current,baseline,diff}/{desktop,mobile}/<name>-{current,baseline,diff}.png``
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

SCREENSHOT_DIR = "screenshots"
KINDS = ("current", "baseline", "diff")
DEVICES = ("desktop", "mobile")


def generate_screenshot_name(test_name: str) -> str:
    """Take the test title up to its first " -" and replace spaces with hyphens."""
    return test_name.split(" -")[0].replace(" ", "-")


def create_folders(root: str | Path = SCREENSHOT_DIR) -> None:
    """Create the {baseline,current,diff}/{desktop,mobile} folder tree."""
    root = Path(root)
    for kind in KINDS:
        for device in DEVICES:
            (root / kind / device).mkdir(parents=True, exist_ok=True)


def storage_key(path: str | Path, root: str | Path = SCREENSHOT_DIR) -> str:
    """Strip the leading screenshots segment to get the object-storage key."""
    posix = Path(path).as_posix()
    prefix = Path(root).as_posix().rstrip("/") + "/"
    if posix.startswith(prefix):
        posix = posix[len(prefix):]
    return posix.lstrip("/")


@dataclass(frozen=True)
class ScreenshotIdentity:
    """Test identity (title + device) and the screenshot paths it maps to."""

    test_name: str
    device: str
    root: str = SCREENSHOT_DIR

    @property
    def name(self) -> str:
        return generate_screenshot_name(self.test_name)

    @property
    def key(self) -> str:
        return f"{self.name}/{self.device}"

    def path(self, kind: str) -> Path:
        if kind not in KINDS:
            raise ValueError(f"Unknown screenshot kind: {kind}")
        return Path(self.root) / kind / self.device / f"{self.name}-{kind}.png"

    @property
    def current_path(self) -> Path:
        return self.path("current")

    @property
    def baseline_path(self) -> Path:
        return self.path("baseline")

    @property
    def diff_path(self) -> Path:
        return self.path("diff")
