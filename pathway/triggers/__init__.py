# pathway/triggers/__init__.py
from .events import EventType, Priority, TriggerEvent
from .detector import TriggerDetector
from .gateway import (
    NotificationGateway,
    LoggingGateway,
    CustomerIOGateway,
    OutboundDispatcher,
    build_gateway,
)

__all__ = [
    "EventType",
    "Priority",
    "TriggerEvent",
    "TriggerDetector",
    "NotificationGateway",
    "LoggingGateway",
    "CustomerIOGateway",
    "OutboundDispatcher",
    "build_gateway",
]
