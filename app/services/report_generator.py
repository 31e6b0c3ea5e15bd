"""Report generator service for the static HTML execution report."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from app.models.automation import StepRecord

logger = logging.getLogger(__name__)

FRAMEWORK_TITLES = {
    "playwright": ("Playwright", "🎭"),
    "puppeteer": ("Puppeteer", "🤖"),
}


def escape_html(text: Optional[str]) -> str:
    """Escape HTML special characters."""
    if not text:
        return ""
    return (str(text)
            .replace("&", "&amp;")
            .replace("<", "&lt;")
            .replace(">", "&gt;")
            .replace('"', "&quot;")
            .replace("'", "&#x27;"))


class ReportGenerator:
    """Service for generating HTML reports from tracked steps."""

    def generate_html_report(
        self,
        execution_id: str,
        framework: str,
        steps: List[StepRecord],
        output_path: Path,
        screenshot_url: Optional[Callable[[str], Optional[str]]] = None
    ) -> str:
        """
        Render the report and write it to disk.

        Args:
            execution_id: Execution identifier
            framework: playwright or puppeteer
            steps: Steps tracked during the run
            output_path: Destination HTML file
            screenshot_url: Maps a screenshot file path to a browser URL

        Returns:
            Path of the written report
        """
        html = self.render(framework, steps, screenshot_url=screenshot_url)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(html, encoding="utf-8")
        logger.info(f"[{execution_id}] HTML report generated: {output_path}")
        return str(output_path)

    def render(
        self,
        framework: str,
        steps: List[StepRecord],
        screenshot_url: Optional[Callable[[str], Optional[str]]] = None,
        generated_at: Optional[datetime] = None
    ) -> str:
        """Generate HTML content from tracked steps."""
        display_name, icon = FRAMEWORK_TITLES.get(framework, (framework.title(), ""))
        generated = (generated_at or datetime.utcnow()).strftime("%Y-%m-%d %H:%M:%S UTC")

        total_steps = len(steps)
        passed_steps = sum(1 for s in steps if s.success)
        failed_steps = total_steps - passed_steps
        pass_rate = round(passed_steps / total_steps * 100) if total_steps else 0

        steps_html = ""
        for step in steps:
            status_class = "step-success" if step.success else "step-error"
            status_text = "Success" if step.success else "Failed"
            error_html = f" | Error: {escape_html(step.error_message)}" if step.error_message else ""

            image_html = ""
            if step.screenshot_path:
                src = screenshot_url(step.screenshot_path) if screenshot_url else None
                src = src or step.screenshot_path
                image_html = (
                    f'<a href="{escape_html(src)}" target="_blank">'
                    f'<img src="{escape_html(src)}" class="screenshot" '
                    f'alt="Step {step.step_number} screenshot" loading="lazy"></a>'
                )

            steps_html += f"""
            <div class="step">
                <div class="step-status {status_class}">{step.step_number}</div>
                <div class="step-content">
                    <div class="step-instruction">{escape_html(step.instruction)}</div>
                    <div class="step-meta">
                        Duration: {step.duration_ms or 0}ms |
                        Status: {status_text} |
                        URL: {escape_html(step.target_url) or "N/A"}{error_html}
                    </div>
                </div>
                {image_html}
            </div>"""

        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Automation Report - {display_name}</title>
    <style>
        body {{ font-family: system-ui, -apple-system, sans-serif; margin: 0; padding: 20px; background: #f5f5f5; }}
        .container {{ max-width: 1200px; margin: 0 auto; }}
        .header {{ background: white; padding: 20px; border-radius: 8px; margin-bottom: 20px; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }}
        .stats {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 15px; margin-bottom: 20px; }}
        .stat-card {{ background: white; padding: 15px; border-radius: 8px; text-align: center; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }}
        .stat-value {{ font-size: 2em; font-weight: bold; color: #3b82f6; }}
        .stat-label {{ color: #6b7280; margin-top: 5px; }}
        .steps {{ background: white; border-radius: 8px; overflow: hidden; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }}
        .steps h2 {{ margin: 0; padding: 20px; background: #f9fafb; border-bottom: 1px solid #e5e7eb; }}
        .step {{ padding: 15px; border-bottom: 1px solid #e5e7eb; display: flex; align-items: center; gap: 15px; }}
        .step:last-child {{ border-bottom: none; }}
        .step-status {{ width: 24px; height: 24px; border-radius: 50%; display: flex; align-items: center; justify-content: center; color: white; font-weight: bold; }}
        .step-success {{ background: #10b981; }}
        .step-error {{ background: #ef4444; }}
        .step-content {{ flex: 1; }}
        .step-instruction {{ font-weight: 500; margin-bottom: 5px; }}
        .step-meta {{ color: #6b7280; font-size: 0.9em; }}
        .screenshot {{ max-width: 200px; border-radius: 4px; cursor: pointer; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>{icon} {display_name} Automation Report</h1>
            <p><strong>Generated:</strong> {generated}</p>
            <p><strong>Framework:</strong> {display_name}</p>
        </div>

        <div class="stats">
            <div class="stat-card">
                <div class="stat-value">{total_steps}</div>
                <div class="stat-label">Total Steps</div>
            </div>
            <div class="stat-card">
                <div class="stat-value">{passed_steps}</div>
                <div class="stat-label">Passed</div>
            </div>
            <div class="stat-card">
                <div class="stat-value">{failed_steps}</div>
                <div class="stat-label">Failed</div>
            </div>
            <div class="stat-card">
                <div class="stat-value">{pass_rate}%</div>
                <div class="stat-label">Success Rate</div>
            </div>
        </div>

        <div class="steps">
            <h2>Execution Steps</h2>
            {steps_html if steps_html else "<p style='padding: 20px;'>No steps executed.</p>"}
        </div>
    </div>
</body>
</html>
"""


# Global report generator instance
_report_generator = ReportGenerator()


def get_report_generator() -> ReportGenerator:
    """Get global report generator instance."""
    return _report_generator
