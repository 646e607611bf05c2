"""Recording sessions and their lifecycle controller."""

from __future__ import annotations

__all__ = [
    "ControllerStatus",
    "ItemStack",
    "PeriodicSampler",
    "RecordingSession",
    "SessionController",
    "SubjectSnapshot",
    "count_inventory_items",
]

from .controller import ControllerStatus, SessionController
from .sampler import PeriodicSampler
from .session import ItemStack, RecordingSession, SubjectSnapshot, count_inventory_items
