"""Session lifecycle and the periodic frame loop.

Public API:
    RemoteSession -- One driver, one frame loop, the public operations
    SessionEvents -- frame/status/error listener registry
"""

from vmrc.session.engine import RemoteSession, SessionStateError
from vmrc.session.events import SessionEvents

__all__ = ["RemoteSession", "SessionEvents", "SessionStateError"]
