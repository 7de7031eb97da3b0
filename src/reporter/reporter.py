"""Report generation orchestration."""

from __future__ import annotations

import logging
from pathlib import Path

from src.models.config import FrameworkConfig
from src.models.test_result import RunResult

from .html_report import generate_html_report
from .json_report import generate_json_report
from .markdown_report import generate_markdown_report

logger = logging.getLogger(__name__)


class Reporter:
    """Generates reports from visual run results."""

    def __init__(self, config: FrameworkConfig):
        self.config = config

    def generate_reports(
        self,
        run_result: RunResult,
        output_dir: Path | None = None,
    ) -> dict[str, str]:
        """Generate all configured report formats. Returns format -> file path."""
        out_dir = output_dir or Path(self.config.report_output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        generated = {}
        logger.debug("Report output directory: %s", out_dir)

        if "html" in self.config.report_formats:
            path = out_dir / f"report_{run_result.run_id}.html"
            logger.debug("Generating HTML report...")
            generate_html_report(run_result, path)
            generated["html"] = str(path)
            logger.info("HTML report: %s", path)

        if "json" in self.config.report_formats:
            path = out_dir / f"report_{run_result.run_id}.json"
            logger.debug("Generating JSON report...")
            generate_json_report(run_result, path)
            generated["json"] = str(path)
            logger.info("JSON report: %s", path)

        if "markdown" in self.config.report_formats:
            path = out_dir / f"report_{run_result.run_id}.md"
            logger.debug("Generating Markdown report...")
            generate_markdown_report(run_result, path)
            generated["markdown"] = str(path)
            logger.info("Markdown report: %s", path)

        return generated
