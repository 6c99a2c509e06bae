"""Configurable in-memory file storage for development and testing."""

from uuid import uuid4

from sales.storage.port import FileStorage, UploadResult


class FakeFileStorage(FileStorage):
    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.should_succeed: bool = True
        self.failure_reason: str = "Storage unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Storage unavailable") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def upload(self, data: bytes, metadata: dict) -> UploadResult:
        self.calls.append({"method": "upload", "size": len(data), "metadata": dict(metadata)})
        if not self.should_succeed:
            return UploadResult(success=False, failure_reason=self.failure_reason)

        filename = metadata.get("filename") or "delivery.jpg"
        file_ref = f"delivery-images/{uuid4().hex[:12]}-{filename}"
        self.files[file_ref] = data
        return UploadResult(success=True, file_ref=file_ref)
