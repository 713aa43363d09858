from .app import RuttApp
from .formatting import truncate

__all__ = ["RuttApp", "truncate"]
