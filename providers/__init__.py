from providers.base import TimelineProvider
from providers.neople_provider import NeopleProvider

__all__ = ["TimelineProvider", "NeopleProvider"]
