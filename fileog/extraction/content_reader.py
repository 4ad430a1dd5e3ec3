"""
Content Reader
==============

Reads the small amount of file content the language model gets to see:
a text preview for text files and a base64 payload for images.
"""

import base64
import codecs
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fileog.config.categories import mime_type_for
from fileog.utils.logging_config import get_logger

logger = get_logger(__name__)

# Bytes read per character of preview; covers the widest UTF-8 sequence.
_BYTES_PER_CHAR = 4

MAX_IMAGE_BYTES = 20 * 1024 * 1024


@dataclass(frozen=True)
class ImagePayload:
    """An image prepared for a vision-capable model."""
    mime_type: str
    data_base64: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data_base64}"


def detect_encoding(raw: bytes) -> str:
    """Detect text encoding from a leading chunk.

    Args:
        raw: First bytes of the file.

    Returns:
        Encoding name.
    """
    if raw.startswith(codecs.BOM_UTF8):
        return 'utf-8-sig'
    if raw.startswith(codecs.BOM_UTF16_LE):
        return 'utf-16'
    if raw.startswith(codecs.BOM_UTF16_BE):
        return 'utf-16'
    return 'utf-8'


def read_text_preview(file_path: Path, max_chars: int = 1000) -> Optional[str]:
    """Read at most ``max_chars`` characters from the start of a text file.

    Decoding is incremental, so a multi-byte sequence cut by the read limit
    is held back instead of being split or replaced.

    Args:
        file_path: File to read.
        max_chars: Maximum number of characters to return.

    Returns:
        The preview text, or None if the file is binary or unreadable.
    """
    file_path = Path(file_path)
    try:
        with open(file_path, 'rb') as f:
            raw = f.read(max_chars * _BYTES_PER_CHAR + 4)
    except OSError as e:
        logger.debug(f"Cannot read content of {file_path}: {e}")
        return None

    encoding = detect_encoding(raw)
    if encoding == 'utf-8' and b'\x00' in raw:
        return None

    decoder = codecs.getincrementaldecoder(encoding)(errors='replace')
    text = decoder.decode(raw, final=False)
    return text[:max_chars]


def read_image_payload(file_path: Path) -> Optional[ImagePayload]:
    """Load an image as a base64 payload for vision prompts.

    Returns:
        The payload, or None if the file is not a known image type,
        too large, or unreadable.
    """
    file_path = Path(file_path)
    mime_type = mime_type_for(file_path.suffix)
    if not mime_type or not mime_type.startswith('image/'):
        return None
    try:
        if file_path.stat().st_size > MAX_IMAGE_BYTES:
            logger.info(f"Image too large for vision prompt: {file_path.name}")
            return None
        data = file_path.read_bytes()
    except OSError as e:
        logger.debug(f"Cannot read image {file_path}: {e}")
        return None
    return ImagePayload(
        mime_type=mime_type,
        data_base64=base64.b64encode(data).decode('ascii'),
    )
