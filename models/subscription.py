from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from models.event import EntityKey


@dataclass
class Subscription:
    """Polling state of one tracked character.

    ``last_checked`` is the upper bound of the last successfully scanned
    timeline window; ``last_cycle_started`` drives the poll cadence.
    """

    entity_key: EntityKey
    last_checked: datetime
    created_at: datetime
    last_cycle_started: datetime | None = None
