from .models import EventLevel, FormEvent, FormEventType
from .emitter import FormEventEmitter, NullEventEmitter
from .memory_emitter import MemoryEventEmitter

__all__ = [
    "EventLevel",
    "FormEvent",
    "FormEventType",
    "FormEventEmitter",
    "NullEventEmitter",
    "MemoryEventEmitter",
]
