"""
Assignment Service
Links meter readers to the consumers they read in a billing cycle
"""
import logging
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import desc, func

from bawasa.database.db import get_db
from bawasa.database.models import (
    ACTIVE_ASSIGNMENT_STATUSES,
    ASSIGNMENT_STATUSES,
    Consumer,
    MeterReader,
    MeterReaderAssignment,
    MeterReading,
)
from bawasa.services.serializers import serialize_assignment, serialize_consumer

logger = logging.getLogger("assignment-service")


def assignment_counts(db, meter_reader_id: int) -> dict:
    rows = dict(
        db.query(MeterReaderAssignment.status, func.count(MeterReaderAssignment.id))
        .filter(MeterReaderAssignment.meter_reader_id == meter_reader_id)
        .group_by(MeterReaderAssignment.status)
        .all()
    )
    return {
        "active": sum(rows.get(s, 0) for s in ACTIVE_ASSIGNMENT_STATUSES),
        "completed": rows.get("completed", 0),
    }


class AssignmentService:
    """
    Meter reader assignments: assigned -> ongoing -> completed.
    A consumer has at most one assigned/ongoing assignment at a time.
    """

    def assign_consumers(self, meter_reader_id: int, consumer_ids: Iterable[int]) -> dict:
        consumer_ids = list(dict.fromkeys(consumer_ids or []))
        if not consumer_ids:
            return {"success": False, "message": "consumer_ids is required", "error_code": "invalid"}

        try:
            with get_db() as db:
                reader = db.query(MeterReader).filter(MeterReader.id == meter_reader_id).first()
                if not reader:
                    return {"success": False, "message": "Meter reader not found", "error_code": "not_found"}
                if reader.status == "suspended":
                    return {
                        "success": False,
                        "message": "Suspended meter readers cannot receive assignments",
                        "error_code": "forbidden",
                    }

                assigned, skipped = [], []
                for consumer_id in consumer_ids:
                    consumer = db.query(Consumer).filter(Consumer.id == consumer_id).first()
                    if not consumer:
                        skipped.append({"consumer_id": consumer_id, "reason": "Consumer not found"})
                        continue

                    active = db.query(MeterReaderAssignment).filter(
                        MeterReaderAssignment.consumer_id == consumer_id,
                        MeterReaderAssignment.status.in_(ACTIVE_ASSIGNMENT_STATUSES),
                    ).first()
                    if active:
                        skipped.append({"consumer_id": consumer_id, "reason": "Consumer already has an active assignment"})
                        continue

                    pending = (
                        db.query(MeterReading)
                        .filter(
                            MeterReading.consumer_id == consumer_id,
                            MeterReading.is_recorded.is_(False),
                        )
                        .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
                        .first()
                    )

                    assignment = MeterReaderAssignment(
                        meter_reader_id=reader.id,
                        consumer_id=consumer_id,
                        meter_reading_id=pending.id if pending else None,
                        status="assigned",
                    )
                    db.add(assignment)
                    assigned.append(assignment)

                db.flush()
                logger.info(
                    f"Meter reader {reader.id}: {len(assigned)} consumer(s) assigned, {len(skipped)} skipped"
                )
                return {
                    "success": True,
                    "assigned": [serialize_assignment(a) for a in assigned],
                    "skipped": skipped,
                }

        except Exception as e:
            logger.exception(f"Assignment failed: {e}")
            return {"success": False, "message": "Failed to assign consumers"}

    def update_assignment_status(self, assignment_id: int, status: str) -> dict:
        """Moves an assignment forward; backwards moves are refused"""
        if status not in ASSIGNMENT_STATUSES:
            return {
                "success": False,
                "message": f"Invalid status. Expected one of {list(ASSIGNMENT_STATUSES)}",
                "error_code": "invalid",
            }

        with get_db() as db:
            assignment = db.query(MeterReaderAssignment).filter(MeterReaderAssignment.id == assignment_id).first()
            if not assignment:
                return {"success": False, "message": "Assignment not found", "error_code": "not_found"}

            current = ASSIGNMENT_STATUSES.index(assignment.status)
            target = ASSIGNMENT_STATUSES.index(status)
            if target < current:
                return {
                    "success": False,
                    "message": f"Cannot move assignment from {assignment.status} back to {status}",
                    "error_code": "conflict",
                }

            assignment.status = status
            db.flush()
            return {"success": True, "assignment": serialize_assignment(assignment)}

    def unassign(self, assignment_id: int) -> dict:
        with get_db() as db:
            assignment = db.query(MeterReaderAssignment).filter(MeterReaderAssignment.id == assignment_id).first()
            if not assignment:
                return {"success": False, "message": "Assignment not found", "error_code": "not_found"}
            if assignment.status not in ACTIVE_ASSIGNMENT_STATUSES:
                return {"success": False, "message": "Completed assignments cannot be removed", "error_code": "conflict"}

            db.delete(assignment)
            return {"success": True, "message": "Assignment removed"}

    def get_assignments(self, meter_reader_id: Optional[int] = None, status: Optional[str] = None) -> List[dict]:
        with get_db() as db:
            q = db.query(MeterReaderAssignment)
            if meter_reader_id is not None:
                q = q.filter(MeterReaderAssignment.meter_reader_id == meter_reader_id)
            if status:
                q = q.filter(MeterReaderAssignment.status == status)
            assignments = q.order_by(desc(MeterReaderAssignment.created_at), desc(MeterReaderAssignment.id)).all()
            return [serialize_assignment(a) for a in assignments]

    def get_assignments_for_account(self, account_id: int, status: Optional[str] = None) -> List[dict]:
        """Assignments of the meter reader signed in with this account"""
        with get_db() as db:
            reader = db.query(MeterReader).filter(MeterReader.reader_id == account_id).first()
            reader_id = reader.id if reader else None

        if reader_id is None:
            return []
        return self.get_assignments(reader_id, status)

    def get_available_consumers(self, today: Optional[date] = None) -> List[dict]:
        """Consumers with no active assignment and not read yet this month"""
        today = today or date.today()

        with get_db() as db:
            busy = {
                row[0] for row in db.query(MeterReaderAssignment.consumer_id)
                .filter(MeterReaderAssignment.status.in_(ACTIVE_ASSIGNMENT_STATUSES))
                .all()
            }

            completed = db.query(MeterReaderAssignment).filter(MeterReaderAssignment.status == "completed").all()
            for assignment in completed:
                stamp = assignment.updated_at or assignment.created_at
                if stamp and (stamp.year, stamp.month) == (today.year, today.month):
                    busy.add(assignment.consumer_id)

            consumers = db.query(Consumer).order_by(Consumer.id).all()
            return [serialize_consumer(c) for c in consumers if c.id not in busy]

    def get_assignment_counts(self, meter_reader_id: int) -> dict:
        with get_db() as db:
            return assignment_counts(db, meter_reader_id)


# Global instance
assignment_service = AssignmentService()
