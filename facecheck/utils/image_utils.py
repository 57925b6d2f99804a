"""Image utilities."""
import base64
import binascii
import io
import logging
import re
from pathlib import Path
from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from facecheck.exceptions import FileError

register_heif_opener()

logger = logging.getLogger(__name__)

_DATA_URI = re.compile(r'^data:image/(?P<fmt>[\w.+-]+);base64,', re.IGNORECASE)
_EXT_ALIASES = {"jpeg": "jpg", "svg+xml": "svg"}


def sniff_image(path: str | Path) -> str | None:
    """Return Pillow format name (e.g. 'JPEG') or None if not an image."""
    try:
        with Image.open(path) as img:
            return img.format
    except (UnidentifiedImageError, OSError):
        return None


def image_mime_type(fmt: str | None) -> str:
    """MIME type for upload, falling back to octet-stream."""
    if not fmt:
        return "application/octet-stream"
    # MIME table is filled lazily by plugin registration
    if fmt not in Image.MIME:
        Image.init()
    return Image.MIME.get(fmt, "application/octet-stream")


def decode_thumbnail(data: str) -> tuple[bytes, str]:
    """Decode a base64 thumbnail (bare or data URI).

    Returns:
        Raw bytes and file extension without dot
    """
    ext = None
    match = _DATA_URI.match(data)
    if match:
        fmt = match.group("fmt").lower()
        ext = _EXT_ALIASES.get(fmt, fmt)
        data = data[match.end():]

    try:
        content = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FileError(f"Invalid base64 thumbnail: {e}") from e
    if not content:
        raise FileError("Empty thumbnail")

    if ext is None:
        try:
            with Image.open(io.BytesIO(content)) as img:
                fmt = (img.format or "jpeg").lower()
            ext = _EXT_ALIASES.get(fmt, fmt)
        except (UnidentifiedImageError, OSError):
            ext = "jpg"
    return content, ext


def thumbnail_filename(prefix: str, id_search: str, ordinal: int, score, ext: str) -> str:
    """Build <prefix>_<searchID>_<ordinal>_score<score>.<ext>."""
    return f"{prefix}_{id_search}_{ordinal}_score{score}.{ext}"


def save_thumbnail(
    data: str, prefix: str, id_search: str, ordinal: int, score,
    out_dir: str | Path = "."
) -> Path:
    """Decode thumbnail and write it to out_dir, return path."""
    content, ext = decode_thumbnail(data)
    path = Path(out_dir) / thumbnail_filename(prefix, id_search, ordinal, score, ext)
    try:
        path.write_bytes(content)
    except OSError as e:
        raise FileError(f"Cannot write {path}: {e}", path=str(path)) from e
    logger.debug(f"Saved thumbnail {path} ({len(content)} bytes)")
    return path
