import logging
import re
from typing import Any, Iterable, List, Optional, Tuple

from app.errors import ServiceError, handle_gateway_error, status_for
from app.models.models import new_id

logger = logging.getLogger(__name__)

FILE_TYPE_ICONS = {
    "application/pdf": "📄",
    "application/msword": "📝",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "📝",
    "application/vnd.ms-powerpoint": "📊",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "📊",
    "video/mp4": "🎥",
    "video/webm": "🎥",
    "text/plain": "📄",
    "application/zip": "📦",
    "application/x-rar-compressed": "📦",
    "image/jpeg": "🖼️",
    "image/png": "🖼️",
    "image/gif": "🖼️",
}


def _storage_error(label: str, exc: Exception) -> ServiceError:
    logger.error("%s error: %s", label, exc)
    return ServiceError(handle_gateway_error(exc), status_for(exc))


def safe_filename(filename: str) -> str:
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", filename or "").strip("._")
    return name or "file"


class StorageService:
    """File operations against one storage bucket (``supabase.storage.from_(bucket_id)``)."""

    def __init__(self, bucket: Any):
        self.bucket = bucket

    def upload_file(self, filename: str, content: bytes, content_type: str) -> str:
        file_id = f"{new_id()}_{safe_filename(filename)}"
        try:
            self.bucket.upload(path=file_id, file=content, file_options={"content-type": content_type})
        except Exception as exc:
            raise _storage_error("File upload", exc) from None
        return file_id

    def upload_multiple_files(self, files: Iterable[Tuple[str, bytes, str]]) -> List[str]:
        file_ids = []
        for filename, content, content_type in files:
            try:
                file_ids.append(self.upload_file(filename, content, content_type))
            except ServiceError:
                logger.error("Failed to upload file %s", filename)
                raise
        return file_ids

    def get_file_download(self, file_id: str) -> str:
        try:
            return self.bucket.get_public_url(file_id, {"download": True})
        except Exception as exc:
            raise _storage_error("Get file download", exc) from None

    def get_file_preview(self, file_id: str, width: Optional[int] = None, height: Optional[int] = None) -> str:
        transform = {k: v for k, v in (("width", width), ("height", height)) if v}
        try:
            if transform:
                return self.bucket.get_public_url(file_id, {"transform": transform})
            return self.bucket.get_public_url(file_id)
        except Exception as exc:
            raise _storage_error("Get file preview", exc) from None

    def get_file_view(self, file_id: str) -> str:
        try:
            return self.bucket.get_public_url(file_id)
        except Exception as exc:
            raise _storage_error("Get file view", exc) from None

    def delete_file(self, file_id: str) -> None:
        try:
            self.bucket.remove([file_id])
        except Exception as exc:
            raise _storage_error("Delete file", exc) from None

    def get_file(self, file_id: str):
        try:
            return self.bucket.info(file_id)
        except Exception as exc:
            raise _storage_error("Get file", exc) from None


def format_file_size(size: int) -> str:
    if size == 0:
        return "0 Bytes"

    sizes = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(sizes) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {sizes[i]}"


def get_file_type_icon(mime_type: str) -> str:
    return FILE_TYPE_ICONS.get(mime_type, "📄")
