"""Photo ingestion: validate uploaded image bytes and turn them into data URIs."""
import base64
import io
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from PIL import Image
from werkzeug.datastructures import FileStorage

from models import Photo
from utils.update_engine import NotFoundError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_FORMATS = {"JPEG", "PNG", "WEBP", "GIF"}
DEFAULT_MAX_IMAGE_BYTES = 8 * 1024 * 1024  # 8 MB
DEFAULT_DECODE_WORKERS = 4


class PhotoDecodeError(ValueError):
    """Raised when a single uploaded photo cannot be decoded."""


@dataclass(frozen=True)
class PhotoIngestResult:
    filename: Optional[str]
    photo: Optional[Photo] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.photo is not None


def _fail_if(condition: bool, message: str) -> None:
    if condition:
        raise PhotoDecodeError(message)


def _get_mime_type(image_format: str) -> str:
    mapping = {
        "JPEG": "image/jpeg",
        "PNG": "image/png",
        "WEBP": "image/webp",
        "GIF": "image/gif",
    }
    return mapping.get(image_format, "application/octet-stream")


def clean_filename(filename: Optional[str]) -> Optional[str]:
    if not filename:
        return None
    return os.path.basename(filename.replace("\\", "/")) or None


def decode_photo(content: bytes, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> str:
    """Validate raw image bytes and return them as a base64 data URI."""
    _fail_if(not content, "Empty file")
    _fail_if(len(content) > max_bytes, "File exceeds size limits")
    try:
        with Image.open(io.BytesIO(content)) as img:
            image_format = img.format
            img.verify()
    except Exception as exc:
        # Pillow signals bad input with many types (DecompressionBombError, SyntaxError, ...).
        raise PhotoDecodeError("Invalid image data") from exc
    _fail_if(image_format not in ALLOWED_IMAGE_FORMATS, "File type not allowed")
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{_get_mime_type(image_format)};base64,{encoded}"


def read_upload(file: FileStorage) -> Tuple[bytes, Optional[str]]:
    return file.read(), clean_filename(file.filename)


def ingest_photos(
    files: Sequence[Tuple[bytes, Optional[str]]],
    apply_photo: Callable[[str, Optional[str]], Photo],
    max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
    max_workers: int = DEFAULT_DECODE_WORKERS,
) -> List[PhotoIngestResult]:
    """Decode a batch of uploads independently and attach each one as it is accepted.

    ``apply_photo`` receives the data URI and filename of one decoded photo and
    must apply it against the current report state. Decoding runs in parallel;
    results are applied in input order and a failure only affects its own item.
    """
    if not files:
        return []

    results: List[PhotoIngestResult] = []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(files)))) as pool:
        futures = [pool.submit(decode_photo, content, max_bytes) for content, _ in files]
        for (_, filename), future in zip(files, futures):
            try:
                url = future.result()
            except PhotoDecodeError as exc:
                logger.warning("Photo rejected", extra={"photo_name": filename, "error": str(exc)})
                results.append(PhotoIngestResult(filename=filename, error=str(exc)))
                continue
            try:
                photo = apply_photo(url, filename)
            except NotFoundError as exc:
                logger.warning("Photo target gone", extra={"photo_name": filename, "error": str(exc)})
                results.append(PhotoIngestResult(filename=filename, error=str(exc)))
                continue
            results.append(PhotoIngestResult(filename=filename, photo=photo))
    return results
