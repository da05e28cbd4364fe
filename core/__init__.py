from core.broadcaster import Broadcaster, LiveChannel
from core.clock import SystemClock
from core.dedup import DedupeCache
from core.detector import DropDetector, is_target_rarity
from core.registry import SubscriptionRegistry
from core.scheduler import PollScheduler
from core.sinks import DropSink

__all__ = [
    "Broadcaster",
    "DedupeCache",
    "DropDetector",
    "DropSink",
    "LiveChannel",
    "PollScheduler",
    "SubscriptionRegistry",
    "SystemClock",
    "is_target_rarity",
]
