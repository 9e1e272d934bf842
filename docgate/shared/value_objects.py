"""Value objects shared by the convert and parse features."""

from dataclasses import dataclass, field

from fastapi import UploadFile

from docgate.shared.exceptions import BadRequestError, PayloadTooLargeError
from docgate.shared.helpers import bytes_to_mb, validate_file_size


@dataclass(frozen=True)
class FileUpload:
    """Value object representing an uploaded file."""

    filename: str
    content: bytes = field(repr=False)
    max_size_mb: int = field(default=100, repr=False, compare=False)

    def __post_init__(self):
        """Validate file upload."""
        self._validate_content()
        self._validate_size()

    def _validate_content(self) -> None:
        if not self.content:
            raise BadRequestError("File is empty")
        if not self.filename or not self.filename.strip():
            raise BadRequestError("File name is missing")

    def _validate_size(self) -> None:
        if self.max_size_mb > 0 and not validate_file_size(len(self.content), self.max_size_mb):
            raise PayloadTooLargeError(self.get_size_mb(), self.max_size_mb)

    @property
    def size(self) -> int:
        return len(self.content)

    def get_size_mb(self) -> float:
        """Get file size in megabytes."""
        return bytes_to_mb(len(self.content))


async def read_upload(file: UploadFile, max_size_mb: int) -> FileUpload:
    """Read a multipart upload into a validated FileUpload."""
    content = await file.read()
    return FileUpload(
        filename=file.filename or "",
        content=content,
        max_size_mb=max_size_mb,
    )
