"""
Issue Service
Maintenance tickets reported by consumers
"""
import json
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc, func, or_

from bawasa.database.db import get_db
from bawasa.database.models import ISSUE_PRIORITIES, ISSUE_STATUSES, Consumer, IssueReport
from bawasa.services.serializers import serialize_issue

logger = logging.getLogger("issue-service")


def _parse_datetime(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class IssueService:
    """
    Issue reports.
    - Create / list / search
    - Status updates and fix scheduling
    """

    def create_issue(self, consumer_id: int, data: dict) -> dict:
        title = (data.get("issue_title") or "").strip()
        if not title:
            return {"success": False, "message": "issue_title is required", "error_code": "invalid"}

        priority = (data.get("priority") or "medium").lower()
        if priority not in ISSUE_PRIORITIES:
            return {
                "success": False,
                "message": f"Invalid priority. Expected one of {list(ISSUE_PRIORITIES)}",
                "error_code": "invalid",
            }

        images = data.get("issue_images") or []
        if not isinstance(images, list):
            return {"success": False, "message": "issue_images must be a list", "error_code": "invalid"}

        with get_db() as db:
            consumer = db.query(Consumer).filter(Consumer.id == consumer_id).first()
            if not consumer:
                return {"success": False, "message": "Consumer not found", "error_code": "not_found"}

            issue = IssueReport(
                consumer_id=consumer.id,
                issue_type=data.get("issue_type"),
                priority=priority,
                issue_title=title,
                description=data.get("description"),
                issue_images=json.dumps(images) if images else None,
                status="open",
            )
            db.add(issue)
            db.flush()

            logger.info(f"Issue {issue.id} reported by {consumer.water_meter_no} ({priority})")
            return {"success": True, "issue": serialize_issue(issue)}

    def _list(self, *criteria) -> List[dict]:
        with get_db() as db:
            issues = (
                db.query(IssueReport)
                .filter(*criteria)
                .order_by(desc(IssueReport.created_at), desc(IssueReport.id))
                .all()
            )
            return [serialize_issue(i) for i in issues]

    def get_all_issues(self) -> List[dict]:
        return self._list()

    def get_issue(self, issue_id: int) -> Optional[dict]:
        with get_db() as db:
            issue = db.query(IssueReport).filter(IssueReport.id == issue_id).first()
            return serialize_issue(issue) if issue else None

    def search_issues(self, query: str) -> List[dict]:
        """Title or description"""
        pattern = f"%{(query or '').strip()}%"
        return self._list(or_(
            IssueReport.issue_title.ilike(pattern),
            IssueReport.description.ilike(pattern),
        ))

    def get_issues_by_priority(self, priority: str) -> List[dict]:
        return self._list(IssueReport.priority == priority)

    def get_issues_by_consumer(self, consumer_id: int) -> List[dict]:
        return self._list(IssueReport.consumer_id == consumer_id)

    def get_issue_stats(self) -> dict:
        with get_db() as db:
            by_priority = dict(
                db.query(IssueReport.priority, func.count(IssueReport.id))
                .group_by(IssueReport.priority)
                .all()
            )
            by_type = {}
            for issue_type, count in (
                db.query(IssueReport.issue_type, func.count(IssueReport.id))
                .group_by(IssueReport.issue_type)
                .all()
            ):
                key = issue_type or "Unknown"
                by_type[key] = by_type.get(key, 0) + count

            return {
                "total": sum(by_priority.values()),
                "high": by_priority.get("high", 0),
                "medium": by_priority.get("medium", 0),
                "low": by_priority.get("low", 0),
                "by_type": by_type,
            }

    def update_issue_status(self, issue_id: int, status: str) -> dict:
        if status not in ISSUE_STATUSES:
            return {
                "success": False,
                "message": f"Invalid status. Expected one of {list(ISSUE_STATUSES)}",
                "error_code": "invalid",
            }

        with get_db() as db:
            issue = db.query(IssueReport).filter(IssueReport.id == issue_id).first()
            if not issue:
                return {"success": False, "message": "Issue not found", "error_code": "not_found"}

            issue.status = status
            db.flush()
            logger.info(f"Issue {issue_id} status -> {status}")
            return {"success": True, "issue": serialize_issue(issue)}

    def schedule_issue(
        self,
        issue_id: int,
        scheduled_date,
        technician: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> dict:
        """
        Schedules the fix: status becomes assigned and a schedule note is
        appended to the description.
        """
        try:
            scheduled = _parse_datetime(scheduled_date)
        except ValueError:
            scheduled = None
        if not scheduled:
            return {"success": False, "message": "A valid scheduled date is required", "error_code": "invalid"}

        with get_db() as db:
            issue = db.query(IssueReport).filter(IssueReport.id == issue_id).first()
            if not issue:
                return {"success": False, "message": "Issue not found", "error_code": "not_found"}

            note = (
                "\n\n---\nSCHEDULED FIX:\n"
                f"Date: {scheduled:%A, %B %d, %Y}\n"
                f"Time: {scheduled:%I:%M %p}\n"
                f"Technician: {technician or 'Not assigned'}"
            )
            if notes:
                note += f"\nNotes: {notes}"

            issue.status = "assigned"
            issue.scheduled_fix_date = scheduled
            if technician:
                issue.assigned_technician = technician
            issue.description = (issue.description or "") + note
            db.flush()

            logger.info(f"Issue {issue_id} scheduled for {scheduled.isoformat()}")
            return {"success": True, "issue": serialize_issue(issue)}


# Global instance
issue_service = IssueService()
