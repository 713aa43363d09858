from .message import FetchRange, LazyBody, MessageRecord, RawMessage

__all__ = ["FetchRange", "LazyBody", "MessageRecord", "RawMessage"]
