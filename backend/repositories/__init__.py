"""Storage backend exports."""

from .key_value_storage import JsonFileKeyValueStorage, KeyValueStorage, MemoryKeyValueStorage

__all__ = [
    "KeyValueStorage",
    "MemoryKeyValueStorage",
    "JsonFileKeyValueStorage",
]
