"""
In-memory call history and tow bookings used by the workflow webhook.
"""

import threading
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from lead_relay.models.openai_schemas import utcnow


class CallRecord(BaseModel):
    phone_number: str
    name: Optional[str] = None
    transcript: str = ""
    summary: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class TowBooking(BaseModel):
    phone_number: str
    location: str
    status: str = "pending"
    created_at: datetime = Field(default_factory=utcnow)


class CallHistory:
    """Append-only call summaries and tow bookings."""

    def __init__(self):
        self.calls: List[CallRecord] = []
        self.tows: List[TowBooking] = []
        self._lock = threading.Lock()

    def add_call(self, record: CallRecord) -> CallRecord:
        with self._lock:
            self.calls.append(record)
        return record

    def latest_call(self, phone_number: str) -> Optional[CallRecord]:
        with self._lock:
            for record in reversed(self.calls):
                if record.phone_number == phone_number:
                    return record
        return None

    def book_tow(self, phone_number: str, location: str) -> TowBooking:
        booking = TowBooking(phone_number=phone_number, location=location)
        with self._lock:
            self.tows.append(booking)
        return booking
