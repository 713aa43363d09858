from .session import IMAPSession, SessionState

__all__ = ["IMAPSession", "SessionState"]
