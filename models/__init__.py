from models.event import DropEvent, EntityKey, LogEntry, Timeline
from models.profile import CharacterProfile, ItemDetail
from models.subscription import Subscription

__all__ = [
    "CharacterProfile",
    "DropEvent",
    "EntityKey",
    "ItemDetail",
    "LogEntry",
    "Subscription",
    "Timeline",
]
