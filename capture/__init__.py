"""
Network capture - CDP event recording and HAR export.
"""

from .events import EventKind, EventLog, ProtocolEvent
from .har_builder import DroppedGroup, HarExportStats, build_har
from .har_models import HarDocument
from .recorder import CaptureSession, attach, attach_to_page, export_har, open_cdp_session

__all__ = [
    "EventKind",
    "EventLog",
    "ProtocolEvent",
    "DroppedGroup",
    "HarExportStats",
    "build_har",
    "HarDocument",
    "CaptureSession",
    "attach",
    "attach_to_page",
    "export_har",
    "open_cdp_session",
]
