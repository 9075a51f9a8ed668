# hyperlocal/models/user.py
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional

from hyperlocal.database import serialize_document, to_object_id


class Role(str, Enum):
    USER = "user"
    PROVIDER = "provider"
    ADMIN = "admin"
    SYSTEM = "system"


class Party(str, Enum):
    """Side of the booking workflow a transition belongs to."""

    CUSTOMER = "customer"
    PROVIDER = "provider"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    id: str

    role: ClassVar[Role]
    collection: ClassVar[Optional[str]] = None

    def can_act(self, booking: dict, party: Party) -> bool:
        raise NotImplementedError

    def can_view(self, booking: dict) -> bool:
        return self.can_act(booking, Party.CUSTOMER) or self.can_act(booking, Party.PROVIDER)


@dataclass(frozen=True)
class UserActor(Actor):
    role: ClassVar[Role] = Role.USER
    collection: ClassVar[Optional[str]] = "users"

    def can_act(self, booking: dict, party: Party) -> bool:
        return party is Party.CUSTOMER and str(booking.get("user_id")) == self.id


@dataclass(frozen=True)
class ProviderActor(Actor):
    role: ClassVar[Role] = Role.PROVIDER
    collection: ClassVar[Optional[str]] = "providers"

    def can_act(self, booking: dict, party: Party) -> bool:
        return party is Party.PROVIDER and str(booking.get("provider_id")) == self.id


@dataclass(frozen=True)
class AdminActor(Actor):
    role: ClassVar[Role] = Role.ADMIN
    collection: ClassVar[Optional[str]] = "admins"

    def can_act(self, booking: dict, party: Party) -> bool:
        return party is not Party.SYSTEM


@dataclass(frozen=True)
class SystemActor(Actor):
    role: ClassVar[Role] = Role.SYSTEM

    def can_act(self, booking: dict, party: Party) -> bool:
        return party is Party.SYSTEM

    def can_view(self, booking: dict) -> bool:
        return True


SYSTEM = SystemActor("system")

_ACTORS = {cls.role: cls for cls in (UserActor, ProviderActor, AdminActor)}


def actor_from_claims(claims: dict) -> Optional[Actor]:
    """Build an actor from token claims; None for a missing id or unknown role."""
    actor_id = claims.get("id")
    try:
        cls = _ACTORS[Role(claims.get("role"))]
    except (KeyError, ValueError):
        return None
    if not actor_id:
        return None
    return cls(str(actor_id))


class AccountDirectory:
    """Resolves any actor to its account document in the matching collection."""

    def __init__(self, db):
        self.db = db

    async def get(self, actor: Actor) -> Optional[dict]:
        oid = to_object_id(actor.id)
        if actor.collection is None or oid is None:
            return None
        doc = await self.db[actor.collection].find_one({"_id": oid}, {"password": 0})
        return serialize_document(doc)
