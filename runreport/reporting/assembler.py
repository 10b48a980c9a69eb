"""
Report assembler.

Renders the canonical records, summary and analytics snapshot into one
self-contained HTML document. All data is embedded inline, so the document
opens without a server.
"""

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from .. import __version__
from ..analysis.models import AnalyticsSnapshot, CanonicalTestRecord, Summary
from ..core.config import Config
from ..core.exceptions import ReportAssemblyError
from ..core.logging_config import log_performance
from .models import compute_status_bar

logger = logging.getLogger(__name__)

ERROR_EXCERPT_LENGTH = 300
REPORT_TEMPLATE = "report.html"

FALLBACK_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>Test Report - Generation Failed</title>
</head>
<body>
    <h1>Test Report Generation Failed</h1>
    <p>The report could not be assembled. Results remain in the result store.</p>
    <pre>{{ error }}</pre>
    <p>Generated at {{ generated_at }}</p>
</body>
</html>
"""

DEFAULT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Test Report</title></head>
<body>
    <h1>Test Report</h1>
    <p>Generated {{ generated_at }} &middot; v{{ version }}</p>
    <p>Total: {{ summary.total }} | Passed: {{ summary.passed }} | Failed: {{ summary.failed }} | Skipped: {{ summary.skipped }}</p>
    <table>
    {% for record in records %}
        <tr><td>{{ record.test_name }}</td><td>{{ record.status.value }}</td><td>{{ record.error|excerpt }}</td></tr>
    {% endfor %}
    </table>
    <script type="application/json" id="report-data">{{ report_data|tojson }}</script>
</body>
</html>
"""


def excerpt(text: Optional[str], length: int = ERROR_EXCERPT_LENGTH) -> str:
    """Truncate an error message for inline display."""
    if not text:
        return ""
    if len(text) <= length:
        return text
    return text[:length] + "..."


class ReportAssembler:
    """
    Writes the HTML report and the JSON data export.

    Text from test names, errors and logs is only ever inserted through the
    autoescaping template environment or the ``tojson`` filter.
    """

    def __init__(self, config: Config, template_dir: Optional[Path] = None):
        """
        Initialize the report assembler.

        Args:
            config: Configuration holding the report and data export paths
            template_dir: Directory containing ``report.html``
        """
        self.config = config
        self.report_path = Path(config.report_path)
        self.data_path = Path(config.data_path)
        self.template_dir = template_dir or (Path(__file__).parent / "templates")

        self.jinja_env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=True,
        )
        self.jinja_env.filters["excerpt"] = excerpt

    def build_report_data(
        self,
        summary: Summary,
        records: List[CanonicalTestRecord],
        snapshot: Optional[AnalyticsSnapshot] = None,
        generated_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Serializable payload embedded in the report."""
        generated_at = generated_at or datetime.now(timezone.utc)
        summary_data = summary.model_dump(mode="json", by_alias=True)
        summary_data["successRate"] = summary.success_rate
        return {
            "generatedAt": generated_at.isoformat(),
            "version": __version__,
            "summary": summary_data,
            "statusBar": [s.model_dump() for s in compute_status_bar(summary)],
            "records": [r.to_report_dict() for r in records],
            "analytics": (snapshot or AnalyticsSnapshot()).model_dump(mode="json", by_alias=True),
        }

    def render(
        self,
        summary: Summary,
        records: List[CanonicalTestRecord],
        snapshot: Optional[AnalyticsSnapshot] = None,
    ) -> str:
        generated_at = datetime.now(timezone.utc)
        snapshot = snapshot or AnalyticsSnapshot()

        try:
            template = self.jinja_env.get_template(REPORT_TEMPLATE)
        except TemplateNotFound:
            logger.warning(f"Report template not found in {self.template_dir}, using default")
            template = self.jinja_env.from_string(DEFAULT_TEMPLATE)

        return template.render(
            summary=summary,
            records=records,
            snapshot=snapshot,
            status_bar=compute_status_bar(summary),
            report_data=self.build_report_data(summary, records, snapshot, generated_at),
            generated_at=generated_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
            version=__version__,
            framework=self.config.framework_name,
        )

    def assemble(
        self,
        summary: Summary,
        records: List[CanonicalTestRecord],
        snapshot: Optional[AnalyticsSnapshot] = None,
    ) -> Path:
        """
        Write the report and data export.

        Any failure produces the fallback document at the report path instead.

        Returns:
            Path of the written report
        """
        start_time = time.time()
        try:
            html = self.render(summary, records, snapshot)
            self._write(self.report_path, html)
            self.write_data_export(records)
        except Exception as e:
            logger.error(f"Report assembly failed: {e}")
            return self.write_fallback(e)

        log_performance(
            logger,
            "report_assembly",
            time.time() - start_time,
            records=len(records),
            report_path=str(self.report_path),
        )
        logger.info(f"Report written to {self.report_path}")
        return self.report_path

    def write_data_export(self, records: List[CanonicalTestRecord]) -> Path:
        """Write the record list as JSON next to the report."""
        payload = json.dumps([r.to_report_dict() for r in records], indent=2, ensure_ascii=False)
        self._write(self.data_path, payload)
        return self.data_path

    def write_fallback(self, error: Any) -> Path:
        """
        Write a minimal document describing an assembly failure.

        Raises:
            ReportAssemblyError: If even the fallback cannot be written
        """
        html = self.jinja_env.from_string(FALLBACK_TEMPLATE).render(
            error=str(error),
            generated_at=datetime.now(timezone.utc).isoformat(),
        )
        self._write(self.report_path, html)
        logger.warning(f"Fallback report written to {self.report_path}")
        return self.report_path

    @staticmethod
    def _write(path: Path, content: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise ReportAssemblyError(f"Failed to write {path}: {e}", output_path=str(path))
