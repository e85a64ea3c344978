"""Change notification: in-process fan-out and the realtime channel client."""

from .notifier import ChangeEvent, ChangeHandler, ChangeKind, ChangeNotifier
from .channel import RealtimeChannel, RealtimeChannelError

__all__ = [
    "ChangeEvent",
    "ChangeHandler",
    "ChangeKind",
    "ChangeNotifier",
    "RealtimeChannel",
    "RealtimeChannelError",
]
