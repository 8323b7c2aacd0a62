import re
import uuid
from pathlib import Path

from fastapi import HTTPException, Request, UploadFile

from .config import PHOTO_MAX_BYTES, UPLOADS_DIR

ALLOWED_PHOTO_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_registration_input(email: str, password: str) -> tuple[str, str]:
    e = normalize_email(email)
    if not re.match(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$", e):
        raise HTTPException(status_code=400, detail="Invalid email format")
    if len(e) > 254:
        raise HTTPException(status_code=400, detail="Email too long")
    if len(password) < 8:
        raise HTTPException(status_code=400, detail="Password must be at least 8 characters")
    return e, password


class LocalBlobStore:
    """Writes uploads under a directory that main mounts at /uploads."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def put(self, data: bytes, owner_user_id: str, ext: str) -> str:
        fname = f"{owner_user_id}_{uuid.uuid4().hex}{ext}"
        (self.root / fname).write_bytes(data)
        return fname


blob_store = LocalBlobStore(UPLOADS_DIR)


def public_upload_url(request: Request, filename: str) -> str:
    return f"{str(request.base_url).rstrip('/')}/uploads/{filename}"


async def store_uploaded_photo(file: UploadFile, owner_user_id: str, request: Request) -> str:
    content_type = (file.content_type or "").lower()
    ext = ALLOWED_PHOTO_TYPES.get(content_type)
    if not ext:
        raise HTTPException(status_code=400, detail="Only JPG, PNG, and WEBP images are allowed")

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded image is empty")
    if len(data) > PHOTO_MAX_BYTES:
        raise HTTPException(status_code=400, detail=f"Each image must be <= {PHOTO_MAX_BYTES // (1024 * 1024)}MB")

    fname = blob_store.put(data, owner_user_id, ext)
    return public_upload_url(request, fname)
