"""
Meter Reading Service
Monthly reading creation, present-reading capture and meter changes
"""
import logging
import re
from datetime import date
from typing import List, Optional

from sqlalchemy import desc, func, or_

from bawasa.database.db import get_db
from bawasa.database.models import (
    ACTIVE_ASSIGNMENT_STATUSES,
    PAYMENT_STATUSES,
    Account,
    Billing,
    Consumer,
    MeterReader,
    MeterReaderAssignment,
    MeterReading,
)
from bawasa.services.serializers import serialize_billing, serialize_consumer, serialize_reading
from bawasa.utils import isoformat, parse_date

logger = logging.getLogger("meter-reading-service")

# "[METER_CHANGED:120.5]" -> new meter starts at 120.5; bare "[METER_CHANGED]" -> 0
METER_CHANGED_PATTERN = re.compile(r"\[METER_CHANGED(?::(\d+(?:\.\d+)?))?\]")
METER_CHANGE_REASON_PATTERN = re.compile(r"METER CHANGE:\s*([^.]+)")


def meter_change_start(remarks: Optional[str]) -> Optional[float]:
    """Starting value of the new meter when the remarks carry a meter change marker"""
    if not remarks:
        return None
    match = METER_CHANGED_PATTERN.search(remarks)
    if not match:
        return None
    return float(match.group(1)) if match.group(1) else 0.0


def next_previous_reading(reading: Optional[MeterReading]) -> float:
    """Value the following month's reading starts from"""
    if reading is None:
        return 0.0
    new_start = meter_change_start(reading.remarks)
    if new_start is not None:
        return new_start
    if reading.present_reading is not None:
        return reading.present_reading
    return reading.previous_reading or 0.0


def complete_active_assignments(db, consumer_id: int, reading_id: int, meter_reader_id: Optional[int] = None) -> int:
    """Marks the consumer's assigned/ongoing assignments completed"""
    q = db.query(MeterReaderAssignment).filter(
        MeterReaderAssignment.consumer_id == consumer_id,
        MeterReaderAssignment.status.in_(ACTIVE_ASSIGNMENT_STATUSES),
    )
    if meter_reader_id is not None:
        q = q.filter(MeterReaderAssignment.meter_reader_id == meter_reader_id)

    completed = 0
    for assignment in q.all():
        assignment.status = "completed"
        assignment.meter_reading_id = reading_id
        completed += 1
    return completed


class MeterReadingService:
    """
    Meter reading lifecycle.
    - Empty monthly readings seeded from the previous month
    - Present reading capture by meter readers
    - Meter replacement with a final reading on the old meter
    """

    def _reading_with_consumer(self, reading: MeterReading) -> dict:
        data = serialize_reading(reading)
        data["consumer"] = serialize_consumer(reading.consumer) if reading.consumer else None
        data["billing"] = serialize_billing(reading.billing) if reading.billing else None
        return data

    def create_empty_readings_for_month(self, year: int, month: int) -> dict:
        """
        One unrecorded reading per consumer dated the first of the month.

        Consumers that already have a reading on that date are skipped, so
        running it twice for the same month creates nothing the second time.
        """
        try:
            reading_date = date(int(year), int(month), 1)
        except (TypeError, ValueError):
            return {"success": False, "message": "Invalid year or month", "error_code": "invalid"}

        try:
            with get_db() as db:
                existing = {
                    row[0] for row in db.query(MeterReading.consumer_id)
                    .filter(MeterReading.reading_date == reading_date)
                    .all()
                }

                created = []
                consumers = db.query(Consumer).order_by(Consumer.id).all()
                for consumer in consumers:
                    if consumer.id in existing:
                        continue

                    last = (
                        db.query(MeterReading)
                        .filter(
                            MeterReading.consumer_id == consumer.id,
                            MeterReading.reading_date < reading_date,
                        )
                        .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
                        .first()
                    )
                    previous = next_previous_reading(last)

                    reading = MeterReading(
                        consumer_id=consumer.id,
                        reading_date=reading_date,
                        previous_reading=previous,
                        present_reading=previous,
                        is_recorded=False,
                        reading_assigned=False,
                    )
                    db.add(reading)
                    created.append(reading)

                db.flush()

                # Link the new readings to assignments already waiting for them
                for reading in created:
                    for assignment in db.query(MeterReaderAssignment).filter(
                        MeterReaderAssignment.consumer_id == reading.consumer_id,
                        MeterReaderAssignment.status.in_(ACTIVE_ASSIGNMENT_STATUSES),
                        MeterReaderAssignment.meter_reading_id.is_(None),
                    ):
                        assignment.meter_reading_id = reading.id

                logger.info(
                    f"Monthly readings for {reading_date:%B %Y}: "
                    f"{len(created)} created, {len(existing)} already present"
                )
                return {
                    "success": True,
                    "reading_date": reading_date.isoformat(),
                    "created": len(created),
                    "skipped": len(existing),
                    "readings": [serialize_reading(r) for r in created],
                }

        except Exception as e:
            logger.exception(f"Monthly reading creation failed: {e}")
            return {"success": False, "message": "Failed to create monthly readings"}

    def record_present_reading(
        self,
        reading_id: int,
        present_reading: float,
        meter_image: Optional[str] = None,
        remarks: Optional[str] = None,
        meter_reader_account_id: Optional[int] = None,
    ) -> dict:
        """
        Stores the value read on the meter and completes the assignment.

        Args:
            reading_id: Reading to fill in
            present_reading: Meter value, not below previous_reading
            meter_reader_account_id: When given, the reader must hold an active
                assignment for the consumer
        """
        try:
            present_reading = float(present_reading)
        except (TypeError, ValueError):
            return {"success": False, "message": "present_reading must be a number", "error_code": "invalid"}

        try:
            with get_db() as db:
                reading = db.query(MeterReading).filter(MeterReading.id == reading_id).first()
                if not reading:
                    return {"success": False, "message": "Meter reading not found", "error_code": "not_found"}

                if reading.reading_assigned or reading.billing is not None:
                    return {
                        "success": False,
                        "message": "Reading has already been billed",
                        "error_code": "conflict",
                    }

                if present_reading < (reading.previous_reading or 0):
                    return {
                        "success": False,
                        "message": (
                            f"Present reading ({present_reading}) cannot be lower than "
                            f"previous reading ({reading.previous_reading})"
                        ),
                        "error_code": "invalid",
                    }

                meter_reader_id = None
                if meter_reader_account_id is not None:
                    reader = db.query(MeterReader).filter(MeterReader.reader_id == meter_reader_account_id).first()
                    if not reader or reader.status == "suspended":
                        return {"success": False, "message": "Meter reader is not active", "error_code": "forbidden"}

                    assigned = db.query(MeterReaderAssignment).filter(
                        MeterReaderAssignment.meter_reader_id == reader.id,
                        MeterReaderAssignment.consumer_id == reading.consumer_id,
                        MeterReaderAssignment.status.in_(ACTIVE_ASSIGNMENT_STATUSES),
                    ).first()
                    if not assigned:
                        return {
                            "success": False,
                            "message": "Consumer is not assigned to this meter reader",
                            "error_code": "forbidden",
                        }
                    meter_reader_id = reader.id

                reading.present_reading = present_reading
                reading.consumption_cubic_meters = present_reading - (reading.previous_reading or 0)
                reading.is_recorded = True
                if meter_image:
                    reading.meter_image = meter_image
                if remarks:
                    reading.remarks = remarks

                completed = complete_active_assignments(db, reading.consumer_id, reading.id, meter_reader_id)
                db.flush()

                logger.info(
                    f"Reading {reading.id} recorded: {reading.previous_reading} -> {present_reading} "
                    f"({reading.consumption_cubic_meters} cu.m), {completed} assignment(s) completed"
                )
                return {"success": True, "reading": serialize_reading(reading)}

        except Exception as e:
            logger.exception(f"Recording reading {reading_id} failed: {e}")
            return {"success": False, "message": "Failed to record meter reading"}

    def get_reading(self, reading_id: int) -> Optional[dict]:
        with get_db() as db:
            reading = db.query(MeterReading).filter(MeterReading.id == reading_id).first()
            return self._reading_with_consumer(reading) if reading else None

    def get_latest_readings(self) -> List[dict]:
        """Most recent reading of every consumer with the consumer's reading count"""
        with get_db() as db:
            counts = dict(
                db.query(MeterReading.consumer_id, func.count(MeterReading.id))
                .group_by(MeterReading.consumer_id)
                .all()
            )

            result = []
            for consumer in db.query(Consumer).order_by(Consumer.id).all():
                reading = (
                    db.query(MeterReading)
                    .filter(MeterReading.consumer_id == consumer.id)
                    .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
                    .first()
                )
                if not reading:
                    continue
                data = self._reading_with_consumer(reading)
                data["total_readings"] = counts.get(consumer.id, 0)
                result.append(data)
            return result

    def get_all_readings(self, limit: Optional[int] = None) -> List[dict]:
        with get_db() as db:
            q = db.query(MeterReading).order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
            if limit:
                q = q.limit(limit)
            return [self._reading_with_consumer(r) for r in q.all()]

    def get_readings_for_month(self, year: int, month: int) -> List[dict]:
        reading_date = date(int(year), int(month), 1)
        with get_db() as db:
            readings = (
                db.query(MeterReading)
                .filter(MeterReading.reading_date == reading_date)
                .order_by(MeterReading.consumer_id)
                .all()
            )
            return [self._reading_with_consumer(r) for r in readings]

    def get_readings_by_payment_status(self, status: str) -> List[dict]:
        """Readings whose billing has the given payment status"""
        if status not in PAYMENT_STATUSES:
            raise ValueError(f"Invalid payment status: {status}")

        with get_db() as db:
            readings = (
                db.query(MeterReading)
                .join(Billing, Billing.meter_reading_id == MeterReading.id)
                .filter(Billing.payment_status == status)
                .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
                .all()
            )
            return [self._reading_with_consumer(r) for r in readings]

    def search_readings(self, query: str) -> List[dict]:
        """Consumer name, e-mail or meter number"""
        pattern = f"%{(query or '').strip()}%"
        with get_db() as db:
            readings = (
                db.query(MeterReading)
                .join(Consumer, MeterReading.consumer_id == Consumer.id)
                .join(Account, Consumer.account_id == Account.id)
                .filter(or_(
                    Account.full_name.ilike(pattern),
                    Account.email.ilike(pattern),
                    Consumer.water_meter_no.ilike(pattern),
                ))
                .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
                .all()
            )
            return [self._reading_with_consumer(r) for r in readings]

    def get_readings_by_consumer(self, consumer_id: int) -> List[dict]:
        with get_db() as db:
            readings = (
                db.query(MeterReading)
                .filter(MeterReading.consumer_id == consumer_id)
                .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
                .all()
            )
            return [self._reading_with_consumer(r) for r in readings]

    def get_reading_stats(self) -> dict:
        """Reading totals and counts by the linked billing's payment status"""
        with get_db() as db:
            by_status = dict(
                db.query(Billing.payment_status, func.count(Billing.id))
                .group_by(Billing.payment_status)
                .all()
            )
            stats = {
                "total": db.query(MeterReading).count(),
                "recorded": db.query(MeterReading).filter(MeterReading.is_recorded.is_(True)).count(),
                "billed": db.query(MeterReading).filter(MeterReading.reading_assigned.is_(True)).count(),
            }
            for status in PAYMENT_STATUSES:
                stats[status] = by_status.get(status, 0)
            return stats

    def change_meter(
        self,
        consumer_id: int,
        new_starting_reading: float,
        effective_date,
        reason: str,
        reading_before_change: Optional[float] = None,
    ) -> dict:
        """
        Records the final reading of a replaced meter.

        The final reading carries a [METER_CHANGED:<start>] marker in its remarks;
        the next monthly reading starts from the new meter's starting value.
        An unrecorded reading of the consumer, if any, becomes the final reading.
        """
        try:
            new_starting_reading = float(new_starting_reading)
        except (TypeError, ValueError):
            return {"success": False, "message": "Invalid starting reading", "error_code": "invalid"}
        if new_starting_reading < 0:
            return {"success": False, "message": "Invalid starting reading", "error_code": "invalid"}

        try:
            effective = parse_date(effective_date)
        except ValueError:
            effective = None
        if not effective:
            return {"success": False, "message": "Invalid effective date", "error_code": "invalid"}

        if not reason or not str(reason).strip():
            return {"success": False, "message": "Reason is required", "error_code": "invalid"}
        reason = str(reason).strip()

        try:
            with get_db() as db:
                consumer = db.query(Consumer).filter(Consumer.id == consumer_id).first()
                if not consumer:
                    return {"success": False, "message": "Consumer not found", "error_code": "not_found"}

                # Placeholder of the current cycle, if the reader has not been yet
                pending = (
                    db.query(MeterReading)
                    .filter(
                        MeterReading.consumer_id == consumer_id,
                        MeterReading.is_recorded.is_(False),
                        MeterReading.reading_assigned.is_(False),
                    )
                    .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
                    .first()
                )

                if pending:
                    previous_reading = pending.previous_reading or 0.0
                else:
                    last = (
                        db.query(MeterReading)
                        .filter(MeterReading.consumer_id == consumer_id)
                        .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
                        .first()
                    )
                    previous_reading = next_previous_reading(last)

                final_reading = (
                    float(reading_before_change) if reading_before_change is not None else previous_reading
                )
                if final_reading < previous_reading:
                    return {
                        "success": False,
                        "message": (
                            f"Final reading ({final_reading}) cannot be lower than "
                            f"previous reading ({previous_reading})"
                        ),
                        "error_code": "invalid",
                    }
                consumption_to_bill = final_reading - previous_reading

                remarks = " ".join([
                    f"METER CHANGE: {reason}.",
                    f"Effective {effective.isoformat()}.",
                    f"Final reading on old meter: {final_reading} m³.",
                    f"Previous reading was: {previous_reading} m³.",
                    f"Consumption to bill: {consumption_to_bill} m³.",
                    f"[METER_CHANGED:{new_starting_reading}]",
                ])

                reading = pending or MeterReading(consumer_id=consumer_id, reading_date=effective)
                reading.previous_reading = previous_reading
                reading.present_reading = final_reading
                reading.consumption_cubic_meters = consumption_to_bill
                reading.is_recorded = True
                reading.reading_assigned = False
                reading.remarks = remarks
                if not pending:
                    db.add(reading)
                db.flush()

                complete_active_assignments(db, consumer_id, reading.id)

                logger.info(
                    f"Meter changed for {consumer.water_meter_no}: final {final_reading}, "
                    f"new meter starts at {new_starting_reading}"
                )
                return {
                    "success": True,
                    "reading": serialize_reading(reading),
                    "message": "Meter changed successfully. New meter reading will appear on next reading schedule.",
                    "summary": {
                        "final_reading_before_change": final_reading,
                        "previous_reading": previous_reading,
                        "consumption_to_bill": consumption_to_bill,
                        "new_meter_starts_at": new_starting_reading,
                        "effective_date": effective.isoformat(),
                    },
                }

        except Exception as e:
            logger.exception(f"Meter change for consumer {consumer_id} failed: {e}")
            return {"success": False, "message": "Failed to change meter"}

    def get_meter_change_history(self, consumer_id: int) -> List[dict]:
        with get_db() as db:
            readings = (
                db.query(MeterReading)
                .filter(
                    MeterReading.consumer_id == consumer_id,
                    MeterReading.remarks.like("%[METER_CHANGED%"),
                )
                .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
                .all()
            )

            history = []
            for reading in readings:
                match = METER_CHANGE_REASON_PATTERN.search(reading.remarks or "")
                history.append({
                    "reading_id": reading.id,
                    "reading_date": isoformat(reading.reading_date),
                    "final_reading": reading.present_reading,
                    "previous_reading": reading.previous_reading,
                    "new_meter_starts_at": meter_change_start(reading.remarks),
                    "reason": match.group(1).strip() if match else reading.remarks,
                    "remarks": reading.remarks,
                })
            return history


# Global instance
meter_reading_service = MeterReadingService()
