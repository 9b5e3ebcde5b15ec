import io
from datetime import datetime

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from bawasa.config import RATE_PER_CUBIC_METER


def _peso(value) -> str:
    # Helvetica has no peso sign
    return f"PHP {value or 0:,.2f}"


class PDFService:
    def generate_billing_statement(self, billing: dict) -> bytes:
        """
        Water bill statement PDF for a serialized billing (with consumer and reading)
        Returns: PDF bytes
        """
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=A4)
        width, height = A4

        consumer = billing.get("consumer") or {}
        account = consumer.get("account") or {}
        reading = billing.get("meter_reading") or {}

        # Header
        c.setFont("Helvetica-Bold", 22)
        c.drawString(20 * mm, height - 30 * mm, "BAWASA Water Bill")

        c.setFont("Helvetica", 11)
        c.drawString(20 * mm, height - 40 * mm, f"Billing Month: {billing.get('billing_month')}")
        c.drawString(20 * mm, height - 46 * mm, f"Account Name: {account.get('full_name') or 'N/A'}")
        c.drawString(20 * mm, height - 52 * mm, f"Address: {account.get('full_address') or 'N/A'}")
        c.drawString(20 * mm, height - 58 * mm, f"Water Meter No: {consumer.get('water_meter_no') or 'N/A'}")

        c.line(20 * mm, height - 65 * mm, width - 20 * mm, height - 65 * mm)

        # Readings
        y = height - 80 * mm
        c.setFont("Helvetica-Bold", 13)
        c.drawString(20 * mm, y, "Meter Reading")

        c.setFont("Helvetica", 11)
        for label, value in (
            ("Reading Date", reading.get("reading_date") or "N/A"),
            ("Present Reading", f"{reading.get('present_reading') or 0} cu.m"),
            ("Previous Reading", f"{reading.get('previous_reading') or 0} cu.m"),
            ("Consumption", f"{reading.get('consumption_cubic_meters') or 0} cu.m"),
        ):
            y -= 7 * mm
            c.drawString(25 * mm, y, f"{label}: {value}")

        # Charges
        y -= 14 * mm
        c.setFont("Helvetica-Bold", 13)
        c.drawString(20 * mm, y, f"Charges (Rate: {_peso(RATE_PER_CUBIC_METER)} per cu.m)")

        discount = billing.get("discount_percentage") or 0
        c.setFont("Helvetica", 11)
        for label, value in (
            (f"a. 10 cu.m or below ({billing.get('consumption_10_or_below')} cu.m)",
             _peso(billing.get("amount_10_or_below"))),
            (f"   With discount ({discount * 100:.0f}%, year {billing.get('years_of_service')} of service)",
             _peso(billing.get("amount_10_or_below_with_discount"))),
            (f"b. Over 10 cu.m ({billing.get('consumption_over_10')} cu.m)",
             _peso(billing.get("amount_over_10"))),
            ("Amount current billing", _peso(billing.get("amount_current_billing"))),
            ("Arrears to be paid", _peso(billing.get("arrears_to_be_paid"))),
        ):
            y -= 7 * mm
            c.drawString(25 * mm, y, label)
            c.drawRightString(width - 25 * mm, y, value)

        y -= 12 * mm
        c.setFont("Helvetica-Bold", 14)
        c.drawString(20 * mm, y, "TOTAL AMOUNT DUE")
        c.drawRightString(width - 25 * mm, y, _peso(billing.get("total_amount_due")))

        y -= 8 * mm
        c.setFont("Helvetica", 11)
        c.drawString(20 * mm, y, f"Due Date: {billing.get('due_date')}")
        if billing.get("arrears_after_due_date"):
            y -= 7 * mm
            c.drawString(20 * mm, y, f"Penalty after due date: {_peso(billing.get('arrears_after_due_date'))}")

        y -= 7 * mm
        c.drawString(
            20 * mm, y,
            f"Status: {str(billing.get('payment_status')).upper()}  "
            f"Paid: {_peso(billing.get('amount_paid'))}  "
            f"Balance: {_peso(billing.get('outstanding_balance'))}",
        )

        # Footer
        c.setFont("Helvetica", 9)
        c.drawString(20 * mm, 25 * mm, f"Generated {datetime.now().strftime('%Y-%m-%d %H:%M')}")
        c.drawString(20 * mm, 20 * mm, "This statement was generated electronically.")

        c.showPage()
        c.save()
        return buffer.getvalue()


pdf_service = PDFService()
