# Overview: Local file storage for article images; upload(file) -> public URL.

from __future__ import annotations

import os

from flask import current_app
from werkzeug.utils import secure_filename

from ..extensions import db
from .inventory_service import get_article

ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


class StorageError(Exception):
    """Raised when an upload is rejected."""
    pass


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def save_article_image(article_id: int, file_storage) -> str:
    """
    Store an uploaded image under UPLOAD_FOLDER/articles/<id>/ and point the
    article at it. Returns the public URL.
    """
    article = get_article(article_id)

    filename = secure_filename(file_storage.filename or "")
    ext = _extension(filename)
    if not filename or ext not in ALLOWED_IMAGE_EXTENSIONS:
        raise StorageError(f"Image must be one of: {', '.join(sorted(ALLOWED_IMAGE_EXTENSIONS))}")

    folder = os.path.join(current_app.config["UPLOAD_FOLDER"], "articles", str(article.id))
    os.makedirs(folder, exist_ok=True)
    stored_name = f"image.{ext}"
    file_storage.save(os.path.join(folder, stored_name))

    prefix = current_app.config["UPLOAD_URL_PREFIX"].rstrip("/")
    url = f"{prefix}/articles/{article.id}/{stored_name}"
    article.image_url = url
    db.session.commit()
    current_app.logger.info("Image stored for article %s at %s", article.id, url)
    return url
