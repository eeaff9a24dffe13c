# numbershop/domain/usage.py
"""
Agregacje rekordow CDR i SMS. Bez I/O - dzialaja na dowolnych obiektach
z odpowiednimi atrybutami (wiersze ORM albo schematy *RecordOut).
"""
import csv
import io
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence, Dict, Any, Optional


@dataclass(frozen=True)
class DateRange:
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def is_all_time(self) -> bool:
        return self.start is None and self.end is None

    def label(self) -> str:
        if self.is_all_time:
            return "All time"
        start = self.start.date().isoformat() if self.start else "..."
        end = self.end.date().isoformat() if self.end else "..."
        return f"{start} - {end}"


def format_duration(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    minutes, rest = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {rest}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m {rest}s"


def _money(values) -> Decimal:
    total = sum((Decimal(str(v)) for v in values), Decimal("0"))
    return total.quantize(Decimal("0.01"))


def call_stats(records: Sequence[Any]) -> Dict[str, Any]:
    total_calls = len(records)
    answered = sum(1 for r in records if r.answered)
    inbound = sum(1 for r in records if r.direction == "inbound")
    outbound = sum(1 for r in records if r.direction == "outbound")
    total_duration = sum(r.duration_seconds for r in records)

    # srednia tylko z odebranych polaczen
    average = round(total_duration / answered) if answered else 0

    return {
        "total_calls": total_calls,
        "total_duration_seconds": total_duration,
        "total_duration_formatted": format_duration(total_duration),
        "total_cost": _money(r.cost for r in records),
        "answered_calls": answered,
        "missed_calls": total_calls - answered,
        "average_duration_seconds": average,
        "average_duration_formatted": format_duration(average),
        "inbound_calls": inbound,
        "outbound_calls": outbound,
    }


def sms_stats(records: Sequence[Any]) -> Dict[str, Any]:
    return {
        "total_messages": len(records),
        "total_cost": _money(r.cost for r in records),
        "delivered_messages": sum(1 for r in records if r.status == "delivered"),
        "failed_messages": sum(1 for r in records if r.status == "failed"),
        "inbound_messages": sum(1 for r in records if r.direction == "inbound"),
        "outbound_messages": sum(1 for r in records if r.direction == "outbound"),
        "total_segments": sum(r.segments for r in records),
    }


def _write_csv(header, rows) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue()


CALL_CSV_HEADER = ["Date", "Time", "Direction", "From", "To", "Destination", "Duration", "Status", "Cost (USD)"]
SMS_CSV_HEADER = ["Date", "Time", "Direction", "From", "To", "Message", "Status", "Segments", "Cost (USD)"]


def calls_to_csv(records: Sequence[Any]) -> str:
    rows = [
        [
            r.started_at.strftime("%Y-%m-%d"),
            r.started_at.strftime("%H:%M:%S"),
            r.direction,
            r.from_number,
            r.to_number,
            r.destination_name or "",
            format_duration(r.duration_seconds),
            r.status,
            f"{Decimal(str(r.cost)):.4f}",
        ]
        for r in records
    ]
    return _write_csv(CALL_CSV_HEADER, rows)


def sms_to_csv(records: Sequence[Any]) -> str:
    rows = []
    for r in records:
        message = r.message[:50] + ("..." if len(r.message) > 50 else "")
        rows.append([
            r.created_at.strftime("%Y-%m-%d"),
            r.created_at.strftime("%H:%M:%S"),
            r.direction,
            r.from_number,
            r.to_number,
            message,
            r.status,
            str(r.segments),
            f"{Decimal(str(r.cost)):.4f}",
        ])
    return _write_csv(SMS_CSV_HEADER, rows)


def sms_segments(message: str) -> int:
    return max(1, -(-len(message) // 160))
