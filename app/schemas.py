"""
API and document schemas for the student library.

Rows leaving the database are decoded into these models with ``decode``;
a row that does not fit its model raises ``GatewayError`` instead of being
passed on half-formed.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as ShapeError

from app.errors import GatewayError

Category = Literal["notes", "assignments", "papers", "videos", "code"]
Role = Literal["student", "admin"]
Status = Literal["active", "inactive"]

ModelT = TypeVar("ModelT", bound=BaseModel)


class Document(BaseModel):
    model_config = ConfigDict(from_attributes=True)


def decode(model: Type[ModelT], row: Any) -> ModelT:
    try:
        return model.model_validate(row)
    except ShapeError as exc:
        raise GatewayError(500, f"Invalid {model.__name__} document: {exc.error_count()} field error(s)") from exc


def decode_all(model: Type[ModelT], rows) -> List[ModelT]:
    return [decode(model, row) for row in rows]


# --- ডকুমেন্ট মডেল (Documents) ---

class UserProfile(Document):
    id: str
    name: str
    email: str
    semester: int = Field(..., ge=1, le=6)
    role: Role
    college: Optional[str] = None
    verified: bool
    created_at: datetime


class ResourceOut(Document):
    id: str
    title: str
    description: str = ""
    semester: int = Field(..., ge=1, le=6)
    subject: str
    category: Category
    file_id: str
    file_type: str
    file_size: int = Field(..., ge=0)
    uploaded_by: str
    upload_date: datetime
    download_count: int = Field(..., ge=0)
    rating: float = Field(..., ge=0, le=5)
    tags: List[str] = Field(default_factory=list)
    status: Status

    @field_validator("tags", mode="before")
    @classmethod
    def _listify_tags(cls, value):
        return list(value) if value is not None else []

    @field_validator("description", mode="before")
    @classmethod
    def _blank_description(cls, value):
        return value or ""


class SubjectOut(Document):
    id: str
    name: str
    code: str
    semester: int = Field(..., ge=1, le=6)
    credits: int
    description: str = ""
    prerequisites: List[str] = Field(default_factory=list)
    resource_count: int
    created_at: datetime


class DownloadOut(Document):
    id: str
    user_id: str
    resource_id: str
    download_date: datetime
    file_size: int
    ip_address: str


class BookmarkOut(Document):
    id: str
    user_id: str
    resource_id: str
    created_at: datetime


class SearchResult(BaseModel):
    resources: List[ResourceOut]
    total: int
    page: int
    limit: int


class SubjectCount(BaseModel):
    subject: str
    count: int


class DashboardStats(BaseModel):
    totalResources: int
    totalStudents: int
    totalDownloads: int
    popularSubjects: List[SubjectCount]
    recentUploads: List[ResourceOut]


# --- ইনপুট মডেল (Inputs) ---

class SearchFilters(BaseModel):
    semester: Optional[int] = None
    subject: Optional[str] = None
    category: Optional[Category] = None
    tags: List[str] = Field(default_factory=list)


class RegisterForm(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""
    confirmPassword: str = ""
    semester: int = 1
    college: Optional[str] = None


class LoginForm(BaseModel):
    email: str = ""
    password: str = ""


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    semester: Optional[int] = Field(None, ge=1, le=6)
    college: Optional[str] = None


class ProfileCreate(BaseModel):
    name: str
    semester: int = Field(..., ge=1, le=6)
    college: Optional[str] = None


class RecoveryRequest(BaseModel):
    email: str


class RecoveryConfirm(BaseModel):
    userId: str
    secret: str
    password: str
    passwordAgain: Optional[str] = None


class VerificationConfirm(BaseModel):
    userId: str
    secret: str


class ResourceCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    semester: int = Field(..., ge=1, le=6)
    subject: str = Field(..., min_length=1)
    category: Category
    file_id: str
    file_type: str
    file_size: int = Field(..., ge=0)
    uploaded_by: str
    tags: List[str] = Field(default_factory=list)


class ResourceUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    semester: Optional[int] = Field(None, ge=1, le=6)
    subject: Optional[str] = None
    category: Optional[Category] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    tags: Optional[List[str]] = None
    status: Optional[Status] = None


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    semester: int = Field(..., ge=1, le=6)
    credits: int = Field(0, ge=0)
    description: str = ""
    prerequisites: List[str] = Field(default_factory=list)


def drop_unset(update: BaseModel) -> Dict[str, Any]:
    return update.model_dump(exclude_unset=True, exclude_none=True)
