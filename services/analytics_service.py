"""
Usage analytics: event tracking and dashboard aggregations.
"""
from collections import Counter
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from database.models import AnalyticsEvent, AnalysisResult
from core.logger import logger

EMPTY_SEVERITY_DISTRIBUTION = {"low": 0, "moderate": 0, "high": 0}


class AnalyticsService:
    """Service for analytics events and aggregate statistics."""

    @staticmethod
    def track_event(
        db: Session,
        event_type: str,
        user_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AnalyticsEvent:
        """
        Record an analytics event.

        Args:
            db: Database session
            event_type: Event name (e.g., "submission_uploaded")
            user_id: Acting user
            metadata: Event payload (JSON-serializable)

        Returns:
            Created AnalyticsEvent
        """
        event = AnalyticsEvent(event_type=event_type, user_id=user_id, extra_metadata=metadata)
        try:
            db.add(event)
            db.commit()
            db.refresh(event)
        except Exception:
            db.rollback()
            logger.error(f"Failed to track analytics event {event_type}", exc_info=True)
            raise
        logger.debug(f"Tracked event {event_type} (user {user_id})")
        return event

    @staticmethod
    def get_analysis_stats(db: Session) -> Optional[Dict[str, Any]]:
        """
        Aggregate all analysis results.

        Returns:
            {totalAnalyses, severityDistribution, commonIssues} or None when
            no analyses exist. commonIssues holds the six most frequent
            [issueType, count] pairs, most frequent first.
        """
        results = db.query(AnalysisResult).all()
        if not results:
            return None

        severity_count = dict(EMPTY_SEVERITY_DISTRIBUTION)
        issue_count = Counter()
        for result in results:
            severity = getattr(result.overall_severity, "value", result.overall_severity)
            severity_count[severity] = severity_count.get(severity, 0) + 1
            for issue in result.detected_issues or []:
                issue_count[issue["type"]] += 1

        return {
            "totalAnalyses": len(results),
            "severityDistribution": severity_count,
            "commonIssues": [[issue_type, count] for issue_type, count in issue_count.most_common(6)],
        }
