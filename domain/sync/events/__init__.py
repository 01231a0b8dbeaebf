from domain.sync.events.session_events import SessionErrored, SessionClosed

__all__ = ["SessionErrored", "SessionClosed"]
