# hyperlocal/schemas/dashboard_schema.py
from pydantic import BaseModel
from typing import Dict


class BookingSummary(BaseModel):
    total_bookings: int
    by_status: Dict[str, int]


class QueueCounts(BaseModel):
    waiting: int
    active: int
    delayed: int
    completed: int
    failed: int


class QueueStatus(BaseModel):
    email: QueueCounts
    notification: QueueCounts
    status: str
