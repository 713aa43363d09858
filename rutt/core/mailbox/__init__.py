from .dates import DateBucket, classify_date, format_date
from .state import MailboxState

__all__ = ["DateBucket", "MailboxState", "classify_date", "format_date"]
