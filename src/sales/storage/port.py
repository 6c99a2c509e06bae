"""File storage port for proof-of-delivery images."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class UploadResult:
    success: bool
    file_ref: str | None = None
    failure_reason: str | None = None


class FileStorage(ABC):
    @abstractmethod
    def upload(self, data: bytes, metadata: dict) -> UploadResult:
        """Store ``data`` and return a reference to it.

        ``metadata`` carries the order id, original filename and recipient
        details captured with the image.
        """
        ...
