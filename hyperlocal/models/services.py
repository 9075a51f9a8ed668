# hyperlocal/models/services.py
from datetime import datetime, timezone
from typing import Optional

from hyperlocal.database import serialize_document, to_object_id


class ServiceRepository:
    """Read/update access to service listings. Listing CRUD lives elsewhere."""

    def __init__(self, db):
        self.collection = db.services

    async def get(self, service_id: str) -> Optional[dict]:
        oid = to_object_id(service_id)
        if oid is None:
            return None
        return serialize_document(await self.collection.find_one({"_id": oid}))

    async def update_rating(self, service_id: str, rating: float, review_count: int) -> None:
        oid = to_object_id(service_id)
        if oid is None:
            return
        await self.collection.update_one(
            {"_id": oid},
            {
                "$set": {
                    "rating": rating,
                    "review_count": review_count,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
        )
