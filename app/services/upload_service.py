"""
Upload Service

Stores user images on disk under ``UPLOAD_FOLDER/<category>/``. Files are
checked with Pillow before they are written.
"""

import logging
import random
import time
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError
from flask import current_app
from werkzeug.utils import secure_filename

from ..errors import BadRequest, NotFound

logger = logging.getLogger(__name__)

UPLOAD_CATEGORIES = ('taste-records', 'guilds', 'guild-records')

_FORMAT_EXTENSIONS = {
    'JPEG': '.jpg',
    'PNG': '.png',
    'GIF': '.gif',
    'WEBP': '.webp',
    'BMP': '.bmp',
}


def get_upload_dir(category: str) -> Path:
    """Return the directory for an upload category, creating it if needed."""
    if category not in UPLOAD_CATEGORIES:
        raise NotFound('UNKNOWN_UPLOAD_CATEGORY', f'Unknown upload category: {category}')
    upload_dir = Path(current_app.config['UPLOAD_FOLDER']) / category
    upload_dir.mkdir(parents=True, exist_ok=True)
    return upload_dir


def build_filename(original_name: Optional[str], image_format: Optional[str] = None) -> str:
    """``{base}-{epoch ms}-{random}{ext}`` with a filesystem-safe base."""
    safe = secure_filename(original_name or '')
    path = Path(safe)
    ext = path.suffix.lower() or _FORMAT_EXTENSIONS.get((image_format or '').upper(), '')
    base = path.stem if path.suffix else safe
    base = base or 'image'
    unique = f"{int(time.time() * 1000)}-{random.randint(0, 10 ** 9)}"
    return f"{base}-{unique}{ext}"


def _verify_image(data: bytes) -> str:
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
            return img.format or ''
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.info(f"Rejected upload that is not a readable image: {e}")
        raise BadRequest('INVALID_IMAGE', 'The uploaded file is not a valid image')


class UploadService:

    def save_image(self, category: str, file_storage) -> str:
        """Validate and store one ``werkzeug`` FileStorage; return its public URL."""
        if file_storage is None or not file_storage.filename:
            raise BadRequest('NO_FILE', 'No file was uploaded')

        data = file_storage.read()
        if not data:
            raise BadRequest('NO_FILE', 'The uploaded file is empty')

        image_format = _verify_image(data)
        upload_dir = get_upload_dir(category)
        filename = build_filename(file_storage.filename, image_format)

        (upload_dir / filename).write_bytes(data)
        logger.info(f"Stored upload {category}/{filename} ({len(data)} bytes)")
        return f"/uploads/{category}/{filename}"
