"""Report pipeline invoked by scheduled report jobs.

Only a progress summary is produced here, serialized as JSON or CSV. Richer
document layouts live outside the tracking core and plug in through the
``ReportPipeline`` protocol.
"""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from .db.session import session_scope
from .repositories.progress import progress_store

REPORT_COLUMNS = (
    "subject_id",
    "subject",
    "class_id",
    "deadline",
    "completed_topics",
    "total_topics",
    "percentage_complete",
    "is_on_track",
)


class ReportPipeline(Protocol):
    def generate_report(self, report_type: str, report_format: str, filters: Dict[str, Any]) -> bytes:
        ...


class ProgressReportPipeline:
    """Summarizes every subject's stored progress, optionally narrowed by class."""

    def generate_report(
        self,
        report_type: str,
        report_format: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> bytes:
        filters = filters or {}
        class_id = filters.get("class_id")
        with session_scope(commit=False) as session:
            rows = progress_store.report_rows(session, class_id=class_id if isinstance(class_id, str) else None)

        if report_format == "json":
            document = {
                "report_type": report_type,
                "generated_at": datetime.now(timezone.utc).isoformat(),
                "filters": filters,
                "subjects": rows,
            }
            return json.dumps(document, indent=2).encode("utf-8")
        if report_format == "csv":
            buffer = io.StringIO()
            writer = csv.DictWriter(buffer, fieldnames=REPORT_COLUMNS)
            writer.writeheader()
            for row in rows:
                writer.writerow(row)
            return buffer.getvalue().encode("utf-8")
        raise ValueError(f"Unsupported report format '{report_format}'.")


report_pipeline = ProgressReportPipeline()

__all__ = ["REPORT_COLUMNS", "ProgressReportPipeline", "ReportPipeline", "report_pipeline"]
