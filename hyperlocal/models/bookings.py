# hyperlocal/models/bookings.py
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from pymongo import DESCENDING, ReturnDocument

from hyperlocal.database import as_ref, serialize_document, to_object_id


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BookingRepository:
    """Booking persistence on top of the ``bookings`` collection."""

    def __init__(self, db):
        self.collection = db.bookings

    async def create(self, data: dict) -> dict:
        doc = dict(data)
        for ref in ("user_id", "service_id", "provider_id"):
            doc[ref] = as_ref(doc[ref])
        doc.setdefault("reviews", [])
        doc["created_at"] = doc["updated_at"] = _now()
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return serialize_document(doc)

    async def get(self, booking_id: str) -> Optional[dict]:
        oid = to_object_id(booking_id)
        if oid is None:
            return None
        return serialize_document(await self.collection.find_one({"_id": oid}))

    async def get_many(self, booking_ids: Iterable[str]) -> List[dict]:
        oids = [oid for oid in map(to_object_id, booking_ids) if oid is not None]
        docs = await self.collection.find({"_id": {"$in": oids}}).to_list(None)
        return [serialize_document(doc) for doc in docs]

    async def get_by_order_id(self, order_id: str) -> Optional[dict]:
        doc = await self.collection.find_one({"razorpay_order_id": order_id})
        return serialize_document(doc)

    async def update(self, booking_id: str, fields: dict) -> Optional[dict]:
        oid = to_object_id(booking_id)
        if oid is None:
            return None
        doc = await self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": {**fields, "updated_at": _now()}},
            return_document=ReturnDocument.AFTER,
        )
        return serialize_document(doc)

    async def update_by_order_id(self, order_id: str, fields: dict) -> Optional[dict]:
        doc = await self.collection.find_one_and_update(
            {"razorpay_order_id": order_id},
            {"$set": {**fields, "updated_at": _now()}},
            return_document=ReturnDocument.AFTER,
        )
        return serialize_document(doc)

    async def delete(self, booking_id: str) -> bool:
        oid = to_object_id(booking_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid})
        return result.deleted_count == 1

    async def add_review(self, booking_id: str, review: dict, status: str) -> Optional[dict]:
        """Append a review unless this user already left one.

        Returns the updated booking, or None when the booking is missing or
        the user has a review on it already.
        """
        oid = to_object_id(booking_id)
        if oid is None:
            return None
        user_ref = as_ref(review["user_id"])
        doc = await self.collection.find_one_and_update(
            {"_id": oid, "reviews.user_id": {"$ne": user_ref}},
            {
                "$push": {"reviews": {**review, "user_id": user_ref}},
                "$set": {"status": status, "updated_at": _now()},
            },
            return_document=ReturnDocument.AFTER,
        )
        return serialize_document(doc)

    async def reviewed_for_service(self, service_id: str) -> List[dict]:
        cursor = self.collection.find(
            {
                "service_id": as_ref(service_id),
                "status": {"$regex": "^reviewed$", "$options": "i"},
            },
            {"reviews": 1},
        )
        return [serialize_document(doc) for doc in await cursor.to_list(None)]

    async def list_for_user(self, user_id: str, skip: int = 0, limit: Optional[int] = None) -> List[dict]:
        cursor = self.collection.find({"user_id": as_ref(user_id)}).sort("created_at", DESCENDING).skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return [serialize_document(doc) for doc in await cursor.to_list(None)]

    async def count_for_user(self, user_id: str) -> int:
        return await self.collection.count_documents({"user_id": as_ref(user_id)})

    async def list_for_provider(self, provider_id: str) -> List[dict]:
        cursor = self.collection.find({"provider_id": as_ref(provider_id)}).sort("created_at", DESCENDING)
        return [serialize_document(doc) for doc in await cursor.to_list(None)]

    async def booked_times(self, service_id: str, day: datetime, statuses: Iterable[str]) -> List[str]:
        cursor = self.collection.find(
            {"service_id": as_ref(service_id), "date": day, "status": {"$in": list(statuses)}},
            {"time": 1},
        )
        return [doc["time"] for doc in await cursor.to_list(None)]

    async def count_by_status(self) -> dict:
        pipeline = [{"$group": {"_id": "$status", "count": {"$sum": 1}}}]
        rows = await self.collection.aggregate(pipeline).to_list(None)
        return {row["_id"]: row["count"] for row in rows}
