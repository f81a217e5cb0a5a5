"""
Image asset storage.

The sauce service only needs two capabilities from storage: ``store`` bytes
and get back a reference, and ``release`` a reference it no longer uses.
``LocalAssetStore`` keeps images on the local filesystem under the media
root, which the application serves read-only as static files.
"""

import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from piiquante.core.config import Settings
from piiquante.core.exceptions import InvalidInputError, UnavailableError
from piiquante.core.logging import get_logger

logger = get_logger(__name__)

ALLOWED_IMAGE_TYPES: dict[str, str] = {
    "image/jpg": "jpg",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

_WHITESPACE = re.compile(r"\s+")
_UNSAFE = re.compile(r"[/\\\x00]")


@dataclass(frozen=True)
class ImageUpload:
    """An uploaded image, fully read into memory."""

    data: bytes
    content_type: str
    filename: str


class AssetStore(Protocol):
    async def store(self, data: bytes, content_type: str, filename: str) -> str:
        ...

    async def release(self, ref: str) -> None:
        ...


def build_filename(original: str, extension: str, timestamp_ms: int) -> str:
    """
    Build the stored file name for an upload.

    Whitespace becomes ``_``, path separators are dropped and the original
    extension is replaced by the one matching the content type.

    Example:
        >>> build_filename("hot sauce.png", "png", 1700000000000)
        'hot_sauce_1700000000000.png'
    """
    stem = Path(_UNSAFE.sub("", original or "")).stem
    stem = _WHITESPACE.sub("_", stem.strip()).lstrip(".") or "image"
    return f"{stem}_{timestamp_ms}.{extension}"


async def read_upload(upload: UploadFile, max_bytes: int) -> ImageUpload:
    """
    Read an uploaded file into memory, enforcing a maximum size.

    Raises:
        InvalidInputError: If the upload is empty or larger than max_bytes
    """
    chunk_size = 1024 * 1024
    buf = bytearray()
    while True:
        chunk = await upload.read(chunk_size)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise InvalidInputError(
                f"Image too large, max is {max_bytes} bytes",
                code="UPLOAD_TOO_LARGE",
            )
    if not buf:
        raise InvalidInputError("Image file is empty", code="UPLOAD_EMPTY")

    return ImageUpload(
        data=bytes(buf),
        content_type=(upload.content_type or "").lower(),
        filename=upload.filename or "image",
    )


class LocalAssetStore:
    """Filesystem-backed asset store."""

    def __init__(
        self,
        root: Path,
        max_bytes: int,
        clock: Callable[[], float] = time.time,
    ):
        self.root = Path(root)
        self.max_bytes = max_bytes
        self._clock = clock
        self.logger = logger.bind(store="local", root=str(self.root))

    def path_for(self, ref: str) -> Path:
        # Refs are bare file names; anything else is reduced to its name.
        return self.root / Path(ref).name

    async def store(self, data: bytes, content_type: str, filename: str) -> str:
        """
        Write an image and return its reference.

        Args:
            data: Image bytes
            content_type: MIME type of the upload
            filename: Client supplied file name

        Returns:
            The stored file name, used as the asset reference

        Raises:
            InvalidInputError: If the type is not accepted or the size is wrong
            UnavailableError: If the file cannot be written
        """
        extension = ALLOWED_IMAGE_TYPES.get((content_type or "").lower())
        if extension is None:
            raise InvalidInputError(
                "Image must be a JPEG, PNG or WebP file",
                code="UNSUPPORTED_MEDIA_TYPE",
                content_type=content_type,
            )
        if not data:
            raise InvalidInputError("Image file is empty", code="UPLOAD_EMPTY")
        if len(data) > self.max_bytes:
            raise InvalidInputError(
                f"Image too large, max is {self.max_bytes} bytes",
                code="UPLOAD_TOO_LARGE",
            )

        timestamp_ms = int(self._clock() * 1000)
        ref = build_filename(filename, extension, timestamp_ms)
        try:
            await aiofiles.os.makedirs(self.root, exist_ok=True)
            while self.path_for(ref).exists():
                timestamp_ms += 1
                ref = build_filename(filename, extension, timestamp_ms)
            async with aiofiles.open(self.path_for(ref), "xb") as f:
                await f.write(data)
        except OSError as e:
            self.logger.error(
                "Failed to store asset",
                ref=ref,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UnavailableError("Asset storage failed", ref=ref) from e

        self.logger.info("Asset stored", ref=ref, size=len(data))
        return ref

    async def release(self, ref: Optional[str]) -> None:
        """
        Delete a stored asset. Missing files are ignored.

        Raises:
            UnavailableError: If the file exists but cannot be removed
        """
        if not ref:
            return
        path = self.path_for(ref)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            self.logger.debug("Asset already absent", ref=ref)
            return
        except OSError as e:
            self.logger.error(
                "Failed to release asset",
                ref=ref,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UnavailableError("Asset release failed", ref=ref) from e

        self.logger.info("Asset released", ref=ref)


def build_asset_store(settings: Settings) -> LocalAssetStore:
    return LocalAssetStore(settings.media_root, settings.max_upload_bytes)
