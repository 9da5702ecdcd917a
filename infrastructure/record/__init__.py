from .memory_record_store import MemoryRecordStore
from .sql_record_store import SqlRecordStore

__all__ = [
    "MemoryRecordStore",
    "SqlRecordStore",
]
