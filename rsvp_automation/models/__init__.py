from .base import Base, BaseModel, TimeStamp, utcnow
from .event import Event

__all__ = [
    "Base",
    "BaseModel",
    "TimeStamp",
    "Event",
    "utcnow",
]
