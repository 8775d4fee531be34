# app/services/image_storage.py
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from uuid import uuid4

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.errors import BadRequestError

log = logging.getLogger(__name__)

_ALLOWED_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


@dataclass(frozen=True)
class StoredImage:
    public_id: str
    url: str


def upload_dir() -> Path:
    path = Path(settings.UPLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _write(path: Path, data: bytes) -> None:
    path.write_bytes(data)


def _remove(path: Path) -> bool:
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False


async def upload_image(file: UploadFile) -> StoredImage:
    """把上傳的圖片存到本機目錄，回傳 public_id 與對外 URL"""
    ext = _ALLOWED_TYPES.get(file.content_type or "")
    if ext is None:
        raise BadRequestError("Only jpeg, png, webp or gif images are allowed")

    data = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise BadRequestError("Image is too large")
    if not data:
        raise BadRequestError("Image is empty")

    public_id = f"{uuid4().hex}{ext}"
    await run_in_threadpool(_write, upload_dir() / public_id, data)
    log.info("Image stored: %s", public_id)
    return StoredImage(public_id=public_id, url=f"{settings.MEDIA_URL_BASE.rstrip('/')}/{public_id}")


async def delete_image(public_id: Optional[str]) -> bool:
    """刪除圖片；預設大頭貼與不存在的檔案直接略過"""
    if not public_id or public_id == settings.DEFAULT_PROFILE_PHOTO_ID:
        return False
    # 只接受單純檔名，避免路徑跳脫
    if Path(public_id).name != public_id:
        log.warning("Refusing to delete suspicious image id %r", public_id)
        return False
    removed = await run_in_threadpool(_remove, upload_dir() / public_id)
    if removed:
        log.info("Image deleted: %s", public_id)
    return removed
