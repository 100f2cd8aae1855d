from .models import HistoryEntry
from .store import DB_FILENAME, HistoryStore

__all__ = ["HistoryEntry", "HistoryStore", "DB_FILENAME"]
