"""
Engagement Tracker: download history and bookmarks.

The download counter is bumped with ``download_count = download_count + 1``
inside the transaction that writes the Download row, so the counter always
equals the number of Download rows for the resource. Bookmarks are unique
per (user, resource) and need an existing resource; adding twice returns
the existing row and removing deletes every match.
"""
import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from app.constants import DEFAULT_DOWNLOADS_LIMIT
from app.errors import GatewayError, gateway_operation
from app.models.models import Bookmark, Download, Resource, utcnow
from app.schemas import BookmarkOut, DownloadOut, decode, decode_all

logger = logging.getLogger(__name__)


class EngagementService:
    def __init__(self, db: Session):
        self.db = db

    # --- ডাউনলোড (Downloads) ---

    @gateway_operation("Record download")
    def record_download(self, user_id: str, resource_id: str, file_size: int, ip_address: str = "unknown") -> DownloadOut:
        download = Download(
            user_id=user_id,
            resource_id=resource_id,
            download_date=utcnow(),
            file_size=file_size,
            ip_address=ip_address or "unknown",
        )
        self.db.add(download)

        updated = (
            self.db.query(Resource)
            .filter(Resource.id == resource_id)
            .update({Resource.download_count: Resource.download_count + 1}, synchronize_session=False)
        )
        if not updated:
            raise GatewayError(404, "Document with the requested ID could not be found.")

        self.db.commit()
        self.db.refresh(download)
        return decode(DownloadOut, download)

    @gateway_operation("Get user downloads")
    def get_user_downloads(self, user_id: str, limit: int = DEFAULT_DOWNLOADS_LIMIT) -> List[DownloadOut]:
        rows = (
            self.db.query(Download)
            .filter(Download.user_id == user_id)
            .order_by(Download.download_date.desc())
            .limit(limit)
            .all()
        )
        return decode_all(DownloadOut, rows)

    # --- বুকমার্ক (Bookmarks) ---

    def _matching(self, user_id: str, resource_id: str) -> Query:
        return self.db.query(Bookmark).filter(Bookmark.user_id == user_id, Bookmark.resource_id == resource_id)

    @gateway_operation("Add bookmark")
    def add_bookmark(self, user_id: str, resource_id: str) -> BookmarkOut:
        if self.db.get(Resource, resource_id) is None:
            raise GatewayError(404, "Document with the requested ID could not be found.")

        existing = self._matching(user_id, resource_id).first()
        if existing is not None:
            return decode(BookmarkOut, existing)

        bookmark = Bookmark(user_id=user_id, resource_id=resource_id, created_at=utcnow())
        self.db.add(bookmark)
        try:
            self.db.commit()
        except IntegrityError:
            # অন্য রিকোয়েস্ট একই জোড়া আগেই ঢুকিয়ে দিয়েছে
            self.db.rollback()
            existing = self._matching(user_id, resource_id).first()
            if existing is None:
                raise
            return decode(BookmarkOut, existing)

        self.db.refresh(bookmark)
        return decode(BookmarkOut, bookmark)

    @gateway_operation("Remove bookmark")
    def remove_bookmark(self, user_id: str, resource_id: str) -> None:
        self._matching(user_id, resource_id).delete(synchronize_session=False)
        self.db.commit()

    @gateway_operation("Get user bookmarks")
    def get_user_bookmarks(self, user_id: str) -> List[BookmarkOut]:
        rows = self.db.query(Bookmark).filter(Bookmark.user_id == user_id).order_by(Bookmark.created_at.desc()).all()
        return decode_all(BookmarkOut, rows)

    def is_bookmarked(self, user_id: str, resource_id: str) -> bool:
        # কখনো এরর দেয় না, খুঁজতে ব্যর্থ হলে "বুকমার্ক নেই" ধরে নিচ্ছি
        try:
            return self._matching(user_id, resource_id).first() is not None
        except Exception as exc:
            logger.warning("Check bookmark error: %s", exc)
            self.db.rollback()
            return False
