import os
import time
import uuid
from pathlib import Path

import aiofiles
from fastapi import HTTPException, UploadFile, status
from loguru import logger

from app.core.enum import FileType
from app.core.settings import settings

IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/avif": ".avif",
}
PDF_TYPES = {"application/pdf": ".pdf"}

AVATAR_MAX_BYTES = 2 * 1024 * 1024
THUMBNAIL_MAX_BYTES = 3 * 1024 * 1024
BROCHURE_MAX_BYTES = 15 * 1024 * 1024

PUBLIC_PREFIX = "/uploads"


def upload_root() -> Path:
    return Path(settings.UPLOAD_DIR).resolve()


def public_url_to_path(url: str | None) -> Path | None:
    """Map ``/uploads/<folder>/<name>`` back to the file on disk, None for anything else."""
    if not url or not url.startswith(f"{PUBLIC_PREFIX}/"):
        return None
    relative = url[len(PUBLIC_PREFIX) + 1 :]
    root = upload_root()
    candidate = (root / relative).resolve()
    if root not in candidate.parents:
        return None
    return candidate


class LocalUploadService:
    """Stores uploads under the static ``/uploads`` tree."""

    def __init__(self):
        self.root = upload_root()

    async def save_async(
        self,
        file: UploadFile,
        folder: FileType,
        allowed: dict[str, str],
        max_bytes: int,
        prefix: str = "",
    ) -> str:
        content_type = (file.content_type or "").lower()
        if content_type not in allowed:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported file type: {content_type or 'unknown'}",
            )

        data = await file.read()
        if not data:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="File is empty"
            )
        if len(data) > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"File too large (max {max_bytes // (1024 * 1024)}MB)",
            )

        # extension follows the checked content type, never the client filename
        ext = allowed[content_type]
        stem = prefix or uuid.uuid4().hex[:12]
        name = f"{stem}_{int(time.time() * 1000)}{ext}"

        target_dir = self.root / folder.value
        target_dir.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(target_dir / name, "wb") as f:
            await f.write(data)

        logger.info(f"📁 Stored upload {folder.value}/{name} ({len(data)} bytes)")
        return f"{PUBLIC_PREFIX}/{folder.value}/{name}"

    async def remove_async(self, url: str | None, folder: FileType) -> bool:
        path = public_url_to_path(url)
        if path is None or path.parent.name != folder.value:
            return False
        if not path.exists():
            return False
        try:
            os.remove(path)
            return True
        except OSError as e:
            logger.warning(f"⚠ Could not remove {path}: {e}")
            return False
