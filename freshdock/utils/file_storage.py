import os
import shutil
import uuid
from pathlib import Path
from fastapi import UploadFile, HTTPException
from loguru import logger
from freshdock.core.config import settings


# Define storage location (using Path for OS agnostic handling)
UPLOAD_DIR = Path(settings.static_dir) / "uploads"
STATIC_URL_PREFIX = "/static/uploads"

# Buckets mirror what the app stores: grower photos, carrier con notes, receiving evidence
BUCKETS = {"dispatch-photos", "con-note-photos", "issue-photos"}

ALLOWED_IMAGE_EXTENSIONS = {
    "png", "jpg", "jpeg",
    "gif", "webp", "heic", "heif",
    "pdf",  # scanned con notes
}


def validate_image_extension(filename: str) -> str:
    """
    Returns the lower-cased extension if it is allowed for uploads.
    Raises HTTPException otherwise.
    """
    if not filename:
        raise HTTPException(
            status_code=400,
            detail="Filename is required for uploads."
        )

    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""

    if ext not in ALLOWED_IMAGE_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"File type '.{ext}' is not allowed. Allowed: {', '.join(sorted(ALLOWED_IMAGE_EXTENSIONS))}"
        )
    return ext


def save_upload_file(upload_file: UploadFile, bucket: str, owner_id: uuid.UUID) -> str:
    """
    Saves a binary UploadFile stream under static/uploads/<bucket>/<owner_id>/
    and returns the public URL.
    """
    if bucket not in BUCKETS:
        raise ValueError(f"Unknown upload bucket '{bucket}'")

    ext = validate_image_extension(upload_file.filename or "")

    target_dir = UPLOAD_DIR / bucket / str(owner_id)
    os.makedirs(target_dir, exist_ok=True)

    unique_name = f"{uuid.uuid4()}.{ext}"
    file_path = target_dir / unique_name

    try:
        with open(file_path, "wb") as buffer:
            shutil.copyfileobj(upload_file.file, buffer)

        # e.g. http://localhost:8000/static/uploads/con-note-photos/<dispatch>/<uuid>.jpg
        return f"{settings.public_url}{STATIC_URL_PREFIX}/{bucket}/{owner_id}/{unique_name}"

    except OSError as e:
        logger.error(f"Error saving upload to {file_path}: {e}")
        raise HTTPException(
            status_code=500, detail="Upload failed. Please try again.")
