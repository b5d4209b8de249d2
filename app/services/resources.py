"""
Resource Query Service: filtered, paginated and searchable reads over the
resources table, the resource/subject CRUD the upload flow needs, and the
dashboard statistics.

Every query is restricted to ``status == "active"`` and ordered newest
upload first. ``search`` always reports page 1 and takes no offset, so
search results cannot be paged.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Query, Session

from app.constants import (
    DEFAULT_PAGINATION_LIMIT,
    DEFAULT_SEARCH_LIMIT,
    POPULAR_SUBJECTS_LIMIT,
    RECENT_UPLOADS_LIMIT,
)
from app.errors import GatewayError, ValidationError, gateway_operation
from app.models.models import Bookmark, Download, Resource, ResourceTag, Subject, User, utcnow
from app.schemas import (
    DashboardStats,
    ResourceCreate,
    ResourceOut,
    SearchFilters,
    SearchResult,
    SubjectCount,
    SubjectCreate,
    SubjectOut,
    decode,
    decode_all,
)

# upload_date সমান হলে id দিয়ে সাজাচ্ছি, যাতে পেজের সীমানা না নড়ে
NEWEST_FIRST = (Resource.upload_date.desc(), Resource.id.desc())


def _set_tags(resource: Resource, tags) -> None:
    # টিকে থাকা রো রেখে দিচ্ছি, যাতে (resource_id, tag) ডুপ্লিকেট না হয়
    wanted = set(tags)
    resource.tag_rows = [row for row in resource.tag_rows if row.tag in wanted]
    existing = {row.tag for row in resource.tag_rows}
    for tag in sorted(wanted - existing):
        resource.tag_rows.append(ResourceTag(tag=tag))


def _check_window(limit: int, offset: int = 0) -> None:
    if limit < 1:
        raise ValidationError({"limit": "Limit must be at least 1"})
    if offset < 0:
        raise ValidationError({"offset": "Offset cannot be negative"})


class ResourceService:
    def __init__(self, db: Session):
        self.db = db

    # --- কোয়েরি (Queries) ---

    def _active(self) -> Query:
        return self.db.query(Resource).filter(Resource.status == "active")

    def _apply_filters(self, query: Query, filters: Optional[SearchFilters]) -> Query:
        if filters is None:
            return query
        if filters.semester is not None:
            query = query.filter(Resource.semester == filters.semester)
        if filters.subject:
            query = query.filter(Resource.subject == filters.subject)
        if filters.category:
            query = query.filter(Resource.category == filters.category)
        if filters.tags:
            tagged = select(ResourceTag.resource_id).where(ResourceTag.tag.in_(filters.tags))
            query = query.filter(Resource.id.in_(tagged))
        return query

    def _page(self, query: Query, limit: int, offset: int) -> List[ResourceOut]:
        rows = query.order_by(*NEWEST_FIRST).offset(offset).limit(limit).all()
        return decode_all(ResourceOut, rows)

    @gateway_operation("Get resources")
    def list(
        self,
        filters: Optional[SearchFilters] = None,
        limit: int = DEFAULT_PAGINATION_LIMIT,
        offset: int = 0,
    ) -> SearchResult:
        _check_window(limit, offset)
        query = self._apply_filters(self._active(), filters)
        return SearchResult(
            resources=self._page(query, limit, offset),
            total=query.count(),
            page=offset // limit + 1,
            limit=limit,
        )

    @gateway_operation("Search resources")
    def search(
        self,
        term: str,
        filters: Optional[SearchFilters] = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> SearchResult:
        _check_window(limit)
        words = term.split()
        if not words:
            raise ValidationError({"q": "Search term is required"})

        query = self._apply_filters(self._active(), filters)
        for word in words:
            query = query.filter(Resource.title.icontains(word, autoescape=True))

        return SearchResult(resources=self._page(query, limit, 0), total=query.count(), page=1, limit=limit)

    @gateway_operation("Get resources by semester")
    def list_by_semester(self, semester: int) -> List[ResourceOut]:
        rows = self._active().filter(Resource.semester == semester).order_by(*NEWEST_FIRST).all()
        return decode_all(ResourceOut, rows)

    # --- রিসোর্স CRUD ---

    def _get_row(self, resource_id: str) -> Resource:
        resource = self.db.get(Resource, resource_id)
        if resource is None:
            raise GatewayError(404, "Document with the requested ID could not be found.")
        return resource

    @gateway_operation("Create resource")
    def create_resource(self, data: ResourceCreate) -> ResourceOut:
        values = data.model_dump(exclude={"tags"})
        resource = Resource(
            **values,
            upload_date=utcnow(),
            download_count=0,
            rating=0,
            status="active",
        )
        _set_tags(resource, data.tags)
        self.db.add(resource)
        self.db.commit()
        self.db.refresh(resource)
        return decode(ResourceOut, resource)

    @gateway_operation("Get resource")
    def get_resource(self, resource_id: str) -> ResourceOut:
        return decode(ResourceOut, self._get_row(resource_id))

    @gateway_operation("Update resource")
    def update_resource(self, resource_id: str, data: Dict[str, Any]) -> ResourceOut:
        resource = self._get_row(resource_id)
        for key, value in data.items():
            if key == "tags":
                _set_tags(resource, value)
            else:
                setattr(resource, key, value)
        self.db.commit()
        self.db.refresh(resource)
        return decode(ResourceOut, resource)

    @gateway_operation("Delete resource")
    def delete_resource(self, resource_id: str) -> None:
        # পুরোপুরি মুছে ফেলা (hard delete), সাথে এই রিসোর্সের বুকমার্কও
        resource = self._get_row(resource_id)
        self.db.query(Bookmark).filter(Bookmark.resource_id == resource_id).delete(synchronize_session=False)
        self.db.delete(resource)
        self.db.commit()

    # --- সাবজেক্ট (Subjects) ---

    @gateway_operation("Create subject")
    def create_subject(self, data: SubjectCreate) -> SubjectOut:
        subject = Subject(**data.model_dump(), resource_count=0, created_at=utcnow())
        self.db.add(subject)
        self.db.commit()
        self.db.refresh(subject)
        return decode(SubjectOut, subject)

    @gateway_operation("Get subjects by semester")
    def get_subjects_by_semester(self, semester: int) -> List[SubjectOut]:
        rows = self.db.query(Subject).filter(Subject.semester == semester).order_by(Subject.name.asc()).all()
        return decode_all(SubjectOut, rows)

    # --- পরিসংখ্যান (Statistics) ---

    @gateway_operation("Get dashboard stats")
    def get_dashboard_stats(self) -> DashboardStats:
        popular = (
            self.db.query(Resource.subject, func.count(Resource.id).label("count"))
            .filter(Resource.status == "active")
            .group_by(Resource.subject)
            .order_by(func.count(Resource.id).desc(), Resource.subject.asc())
            .limit(POPULAR_SUBJECTS_LIMIT)
            .all()
        )
        recent = self._active().order_by(*NEWEST_FIRST).limit(RECENT_UPLOADS_LIMIT).all()

        return DashboardStats(
            totalResources=self._active().count(),
            totalStudents=self.db.query(User).count(),
            totalDownloads=self.db.query(Download).count(),
            popularSubjects=[SubjectCount(subject=s, count=c) for s, c in popular],
            recentUploads=decode_all(ResourceOut, recent),
        )
