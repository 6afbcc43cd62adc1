"""
Image attachments for tasks.
"""

import mimetypes
from dataclasses import dataclass
from pathlib import Path

# Content types accepted for task images
IMAGE_CONTENT_TYPES = ("image/jpeg", "image/png")


@dataclass
class ImageFile:
    """
    An image picked by the user, held in memory until uploaded.

    Attributes:
        name: Original file name (the extension is kept in storage)
        content: Raw bytes
        content_type: MIME type
    """

    name: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        """Text after the last dot (the whole name if there is none)."""
        return self.name.rsplit(".", 1)[-1]

    @property
    def is_supported(self) -> bool:
        return self.content_type in IMAGE_CONTENT_TYPES

    @classmethod
    def from_path(cls, path: str | Path) -> "ImageFile":
        """Read an image from disk, guessing its content type from the name."""
        path = Path(path).expanduser()
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content=path.read_bytes(),
            content_type=content_type or "application/octet-stream",
        )


def format_size(num_bytes: int) -> str:
    """Format a byte ceiling the way limits are shown to users ("1MB", "512KB")."""
    if num_bytes >= 1024 * 1024 and num_bytes % (1024 * 1024) == 0:
        return f"{num_bytes // (1024 * 1024)}MB"
    if num_bytes >= 1024 and num_bytes % 1024 == 0:
        return f"{num_bytes // 1024}KB"
    return f"{num_bytes} bytes"
