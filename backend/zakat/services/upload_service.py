# Overview: Proof-photo storage for disbursements; staged writes finalized after the DB commit.

"""
Proof Photo Storage

Upload handling is two-phase so the file system never disagrees with a
committed row for long:

1. stage_proof_photo() validates the upload and writes it under a hidden
   staging name inside UPLOAD_FOLDER.
2. The caller commits the database row that references the final name.
3. finalize_photo() renames the staged file into place, or discard_photo()
   removes it when the database write failed.

Replaced or deleted photos are removed only after the commit succeeds.
"""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..validation import UploadError

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
STAGING_PREFIX = ".staged-"


@dataclass(frozen=True)
class StagedPhoto:
    filename: str
    staged_path: str
    final_path: str


def upload_folder() -> str:
    folder = current_app.config.get("UPLOAD_FOLDER")
    if not folder:
        folder = os.path.join(current_app.instance_path, "uploads", "distribusi")
    return folder


def allowed_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def _stream_size(file: FileStorage) -> int:
    stream = file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def stage_proof_photo(file: FileStorage | None) -> StagedPhoto | None:
    """
    Validate and stage an uploaded proof photo. None when no file was sent.

    Raises:
        UploadError: wrong type, too large, or the file could not be written
    """
    if file is None or not file.filename:
        return None

    original = secure_filename(file.filename)
    if not original or not allowed_file(original):
        raise UploadError("Only image files (png, jpg, jpeg, gif, webp) are allowed")
    if not (file.mimetype or "").startswith("image/"):
        raise UploadError("Only image files (png, jpg, jpeg, gif, webp) are allowed")

    max_bytes = int(current_app.config.get("MAX_PROOF_PHOTO_BYTES", 5 * 1024 * 1024))
    size = _stream_size(file)
    if size == 0:
        raise UploadError("Uploaded file is empty")
    if size > max_bytes:
        raise UploadError(f"Proof photo must not exceed {max_bytes // (1024 * 1024)} MB")

    ext = original.rsplit(".", 1)[1].lower()
    filename = f"bukti-{uuid.uuid4().hex}.{ext}"
    folder = upload_folder()
    staged = StagedPhoto(
        filename=filename,
        staged_path=os.path.join(folder, STAGING_PREFIX + filename),
        final_path=os.path.join(folder, filename),
    )

    try:
        os.makedirs(folder, exist_ok=True)
        file.save(staged.staged_path)
    except OSError as exc:
        raise UploadError("Failed to store proof photo") from exc
    return staged


def finalize_photo(staged: StagedPhoto) -> None:
    try:
        os.replace(staged.staged_path, staged.final_path)
    except OSError as exc:
        raise UploadError("Failed to store proof photo") from exc


def discard_photo(staged: StagedPhoto | None) -> None:
    if staged is None:
        return
    try:
        os.remove(staged.staged_path)
    except FileNotFoundError:
        pass
    except OSError:
        current_app.logger.warning("Could not remove staged upload %s", staged.staged_path, exc_info=True)


def remove_photo(filename: str | None) -> None:
    """Best-effort removal of a stored photo after its row no longer references it."""
    if not filename:
        return
    path = os.path.join(upload_folder(), os.path.basename(filename))
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        current_app.logger.warning("Could not remove proof photo %s", path, exc_info=True)
