from consumers.base import EventConsumer
from consumers.console import ConsoleConsumer
from consumers.webhook import WebhookNotifier

__all__ = ["ConsoleConsumer", "EventConsumer", "WebhookNotifier"]
