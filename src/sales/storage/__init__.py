"""File storage factory.

Provides get_storage() / set_storage(); FakeFileStorage is the default.
"""

from sales.storage.fake_adapter import FakeFileStorage
from sales.storage.port import FileStorage, UploadResult

__all__ = ["FileStorage", "UploadResult", "get_storage", "set_storage", "reset_storage"]

_current_storage: FileStorage | None = None


def get_storage() -> FileStorage:
    global _current_storage
    if _current_storage is None:
        _current_storage = FakeFileStorage()
    return _current_storage


def set_storage(storage: FileStorage) -> None:
    global _current_storage
    _current_storage = storage


def reset_storage() -> None:
    global _current_storage
    _current_storage = None
