import logging
import os
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi.staticfiles import StaticFiles
from sqlalchemy import inspect, text
from sqlalchemy.orm import Session
from supabase import create_client

from app.config import Settings, load_settings
from app.constants import (
    ALLOWED_FILE_TYPES,
    APP_DESCRIPTION,
    APP_VERSION,
    CATEGORY_OPTIONS,
    DEFAULT_DOWNLOADS_LIMIT,
    DEFAULT_PAGINATION_LIMIT,
    DEFAULT_SEARCH_LIMIT,
    MAX_FILE_SIZE,
    SEMESTER_OPTIONS,
    SUBJECTS_BY_SEMESTER,
)
from app.database import configure_engine, get_db
from app.errors import ProfileMissingError, ServiceError, ValidationError
from app.identity import IdentityProvider
from app.mailer import SmtpMailer
from app.models import models
from app.schemas import (
    Category,
    LoginForm,
    ProfileCreate,
    ProfileUpdate,
    RecoveryConfirm,
    RecoveryRequest,
    RegisterForm,
    ResourceCreate,
    ResourceOut,
    ResourceUpdate,
    SearchFilters,
    SubjectCreate,
    UserProfile,
    VerificationConfirm,
    drop_unset,
)
from app.services.auth import AuthService
from app.services.engagement import EngagementService
from app.services.resources import ResourceService
from app.state import AppState
from app.storage import StorageService
from app.validation import (
    FILE_TOO_LARGE,
    password_errors,
    validate_file,
    validate_login_form,
    validate_register_form,
)

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session_token"
UPLOAD_CHUNK_SIZE = 1024 * 1024

security = HTTPBearer(auto_error=False)

router = APIRouter()
api = APIRouter(prefix="/api")


# --- ১. ডিপেন্ডেন্সি (Dependencies) ---

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> StorageService:
    return request.app.state.storage


def get_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    token = request.cookies.get(SESSION_COOKIE)
    if not token and credentials:
        token = credentials.credentials
    return token


def get_auth_service(request: Request, db: Session = Depends(get_db)) -> AuthService:
    settings = get_settings(request)
    identity = IdentityProvider(
        db,
        request.app.state.mailer,
        app_name=settings.app_name,
        session_ttl_days=settings.session_ttl_days,
    )
    return AuthService(db, identity, settings)


def get_resource_service(db: Session = Depends(get_db)) -> ResourceService:
    return ResourceService(db)


def get_engagement_service(db: Session = Depends(get_db)) -> EngagementService:
    return EngagementService(db)


def get_app_state(
    token: Optional[str] = Depends(get_session_token),
    auth: AuthService = Depends(get_auth_service),
) -> AppState:
    return AppState(auth).init(token)


def require_user(state: AppState = Depends(get_app_state)) -> UserProfile:
    if state.user is None:
        raise ServiceError("Authentication failed. Please log in again.", status_code=401)
    return state.user


def require_admin(user: UserProfile = Depends(require_user)) -> UserProfile:
    if user.role != "admin":
        raise ServiceError("Access denied. You do not have permission to perform this action.", status_code=403)
    return user


def _check_owner(user: UserProfile, resource: ResourceOut) -> None:
    if user.role != "admin" and resource.uploaded_by != user.id:
        raise ServiceError("Access denied. You do not have permission to perform this action.", status_code=403)


def _session_response(state: AppState, settings: Settings, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    response = JSONResponse(state.snapshot(), status_code=status_code)
    if state.token:
        response.set_cookie(
            key=SESSION_COOKIE,
            value=state.token,
            httponly=True,
            samesite="lax",
            max_age=settings.session_ttl_days * 24 * 3600,
        )
    else:
        response.delete_cookie(SESSION_COOKIE)
    return response


async def _read_upload(file: UploadFile) -> bytes:
    # সাইজ লিমিট পার হলে পুরো বডি মেমোরিতে তোলার আগেই থামছি
    if file.size is not None and file.size > MAX_FILE_SIZE:
        raise ValidationError({"file": FILE_TOO_LARGE})

    chunks = []
    received = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        received += len(chunk)
        if received > MAX_FILE_SIZE:
            raise ValidationError({"file": FILE_TOO_LARGE})
        chunks.append(chunk)
    return b"".join(chunks)


# --- ২. হোমপেজ ও হেলথ চেক ---

@router.get("/")
def read_root(settings: Settings = Depends(get_settings)):
    return {"message": f"{settings.app_name} Backend Running", "version": APP_VERSION}


@router.get("/health")
def health(db: Session = Depends(get_db)):
    response = {"backend": "running", "database": "not available", "collections": []}
    try:
        db.execute(text("SELECT 1"))
        response["database"] = "connected"
        response["collections"] = inspect(db.get_bind()).get_table_names()[:10]
    except Exception as e:
        logger.error("Health check error: %s", e)
        response["database"] = f"error: {str(e)[:50]}"
    return response


@api.get("/options")
def get_options(settings: Settings = Depends(get_settings)):
    return {
        "app": {
            "name": settings.app_name,
            "url": settings.app_url,
            "description": APP_DESCRIPTION,
            "version": APP_VERSION,
        },
        "semesters": SEMESTER_OPTIONS,
        "categories": CATEGORY_OPTIONS,
        "subjectsBySemester": SUBJECTS_BY_SEMESTER,
        "fileTypes": ALLOWED_FILE_TYPES,
        "maxFileSize": MAX_FILE_SIZE,
    }


# --- ৩. সেশন ও প্রোফাইল (Session & Profile) ---

@api.post("/auth/register")
def register(
    form: RegisterForm,
    state: AppState = Depends(get_app_state),
    settings: Settings = Depends(get_settings),
):
    validate_register_form(form)
    try:
        state.register(form)
    except ProfileMissingError:
        return _session_response(state, settings, status.HTTP_202_ACCEPTED)
    return _session_response(state, settings, status.HTTP_201_CREATED)


@api.post("/auth/login")
def login(
    form: LoginForm,
    state: AppState = Depends(get_app_state),
    settings: Settings = Depends(get_settings),
):
    validate_login_form(form)
    try:
        state.login(form.email, form.password)
    except ProfileMissingError:
        return _session_response(state, settings, status.HTTP_202_ACCEPTED)
    return _session_response(state, settings)


@api.post("/auth/logout")
def logout(state: AppState = Depends(get_app_state), settings: Settings = Depends(get_settings)):
    state.logout()
    return _session_response(state, settings)


@api.get("/auth/me")
def current_user(state: AppState = Depends(get_app_state)):
    return state.snapshot()


@api.patch("/auth/profile")
def update_profile(
    update: ProfileUpdate,
    state: AppState = Depends(get_app_state),
    settings: Settings = Depends(get_settings),
):
    state.update_profile(drop_unset(update))
    return _session_response(state, settings)


@api.post("/auth/profile", status_code=status.HTTP_201_CREATED)
def repair_profile(
    data: ProfileCreate,
    state: AppState = Depends(get_app_state),
    settings: Settings = Depends(get_settings),
):
    state.repair_profile(data)
    return _session_response(state, settings, status.HTTP_201_CREATED)


@api.post("/auth/recovery")
def forgot_password(data: RecoveryRequest, auth: AuthService = Depends(get_auth_service)):
    auth.forgot_password(data.email)
    return {"message": "Password recovery email sent"}


@api.put("/auth/recovery")
def reset_password(data: RecoveryConfirm, auth: AuthService = Depends(get_auth_service)):
    errors = password_errors(data.password)
    if errors:
        raise ValidationError(errors)
    auth.reset_password(data.userId, data.secret, data.password, data.passwordAgain)
    return {"message": "Password has been reset"}


@api.post("/auth/verification")
def send_verification(
    token: Optional[str] = Depends(get_session_token),
    auth: AuthService = Depends(get_auth_service),
):
    auth.send_verification(token)
    return {"message": "Verification email sent"}


@api.put("/auth/verification")
def verify_email(data: VerificationConfirm, auth: AuthService = Depends(get_auth_service)):
    auth.verify_email(data.userId, data.secret)
    return {"message": "Email verified"}


# --- ৪. রিসোর্স (Resources) ---

@api.get("/resources")
def list_resources(
    semester: Optional[int] = None,
    subject: Optional[str] = None,
    category: Optional[Category] = None,
    tags: List[str] = Query(default=[]),
    limit: int = DEFAULT_PAGINATION_LIMIT,
    offset: int = 0,
    resources: ResourceService = Depends(get_resource_service),
):
    filters = SearchFilters(semester=semester, subject=subject, category=category, tags=tags)
    return resources.list(filters, limit=limit, offset=offset)


@api.get("/resources/search")
def search_resources(
    q: str = "",
    semester: Optional[int] = None,
    subject: Optional[str] = None,
    category: Optional[Category] = None,
    tags: List[str] = Query(default=[]),
    limit: int = DEFAULT_SEARCH_LIMIT,
    resources: ResourceService = Depends(get_resource_service),
):
    filters = SearchFilters(semester=semester, subject=subject, category=category, tags=tags)
    return resources.search(q, filters, limit=limit)


@api.get("/semesters/{semester}/resources")
def resources_by_semester(semester: int, resources: ResourceService = Depends(get_resource_service)):
    return resources.list_by_semester(semester)


@api.post("/resources", status_code=status.HTTP_201_CREATED)
async def upload_resource(
    title: str = Form(...),
    semester: int = Form(..., ge=1, le=6),
    subject: str = Form(...),
    category: Category = Form(...),
    description: str = Form(""),
    tags: str = Form(""),
    file: UploadFile = File(...),
    user: UserProfile = Depends(require_user),
    resources: ResourceService = Depends(get_resource_service),
    storage: StorageService = Depends(get_storage),
):
    file_content = await _read_upload(file)
    check = validate_file(len(file_content), file.content_type)
    if not check.is_valid:
        raise ValidationError({"file": check.error})

    file_id = storage.upload_file(file.filename, file_content, file.content_type)
    data = ResourceCreate(
        title=title,
        description=description,
        semester=semester,
        subject=subject,
        category=category,
        file_id=file_id,
        file_type=file.content_type,
        file_size=len(file_content),
        uploaded_by=user.id,
        tags=[t.strip() for t in tags.split(",") if t.strip()],
    )
    try:
        return resources.create_resource(data)
    except ServiceError:
        # ডকুমেন্ট তৈরি হয়নি, তাই আপলোড করা ফাইলটা মুছে ফেলছি
        try:
            storage.delete_file(file_id)
        except ServiceError:
            logger.warning("Could not remove orphaned file %s", file_id)
        raise


@api.get("/resources/{resource_id}")
def get_resource(resource_id: str, resources: ResourceService = Depends(get_resource_service)):
    return resources.get_resource(resource_id)


@api.patch("/resources/{resource_id}")
def update_resource(
    resource_id: str,
    update: ResourceUpdate,
    user: UserProfile = Depends(require_user),
    resources: ResourceService = Depends(get_resource_service),
):
    _check_owner(user, resources.get_resource(resource_id))
    return resources.update_resource(resource_id, drop_unset(update))


@api.delete("/resources/{resource_id}")
def delete_resource(
    resource_id: str,
    user: UserProfile = Depends(require_user),
    resources: ResourceService = Depends(get_resource_service),
    storage: StorageService = Depends(get_storage),
):
    resource = resources.get_resource(resource_id)
    _check_owner(user, resource)
    resources.delete_resource(resource_id)
    # ডকুমেন্ট আগেই মুছে গেছে, স্টোরেজ ফেইল করলে শুধু লগ রাখছি
    try:
        storage.delete_file(resource.file_id)
    except ServiceError:
        logger.warning("Could not remove file %s of deleted resource %s", resource.file_id, resource_id)
    return {"ok": True}


@api.get("/resources/{resource_id}/download")
def download_resource(
    resource_id: str,
    request: Request,
    user: UserProfile = Depends(require_user),
    resources: ResourceService = Depends(get_resource_service),
    engagement: EngagementService = Depends(get_engagement_service),
    storage: StorageService = Depends(get_storage),
):
    resource = resources.get_resource(resource_id)
    url = storage.get_file_download(resource.file_id)
    ip_address = request.client.host if request.client else "unknown"
    download = engagement.record_download(user.id, resource.id, resource.file_size, ip_address)
    return {"url": url, "download": download}


@api.get("/resources/{resource_id}/preview")
def preview_resource(
    resource_id: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
    resources: ResourceService = Depends(get_resource_service),
    storage: StorageService = Depends(get_storage),
):
    resource = resources.get_resource(resource_id)
    return {
        "preview": storage.get_file_preview(resource.file_id, width, height),
        "view": storage.get_file_view(resource.file_id),
    }


# --- ৫. বুকমার্ক ও ডাউনলোড হিস্ট্রি ---

@api.get("/resources/{resource_id}/bookmark")
def bookmark_status(
    resource_id: str,
    user: UserProfile = Depends(require_user),
    engagement: EngagementService = Depends(get_engagement_service),
):
    return {"bookmarked": engagement.is_bookmarked(user.id, resource_id)}


@api.put("/resources/{resource_id}/bookmark")
def add_bookmark(
    resource_id: str,
    user: UserProfile = Depends(require_user),
    engagement: EngagementService = Depends(get_engagement_service),
):
    return engagement.add_bookmark(user.id, resource_id)


@api.delete("/resources/{resource_id}/bookmark")
def remove_bookmark(
    resource_id: str,
    user: UserProfile = Depends(require_user),
    engagement: EngagementService = Depends(get_engagement_service),
):
    engagement.remove_bookmark(user.id, resource_id)
    return {"bookmarked": False}


@api.get("/me/downloads")
def my_downloads(
    limit: int = Query(DEFAULT_DOWNLOADS_LIMIT, ge=1),
    user: UserProfile = Depends(require_user),
    engagement: EngagementService = Depends(get_engagement_service),
):
    return engagement.get_user_downloads(user.id, limit)


@api.get("/me/bookmarks")
def my_bookmarks(
    user: UserProfile = Depends(require_user),
    engagement: EngagementService = Depends(get_engagement_service),
):
    return engagement.get_user_bookmarks(user.id)


# --- ৬. সাবজেক্ট ও পরিসংখ্যান (Stats) ---

@api.post("/subjects", status_code=status.HTTP_201_CREATED)
def create_subject(
    data: SubjectCreate,
    admin: UserProfile = Depends(require_admin),
    resources: ResourceService = Depends(get_resource_service),
):
    return resources.create_subject(data)


@api.get("/semesters/{semester}/subjects")
def subjects_by_semester(semester: int, resources: ResourceService = Depends(get_resource_service)):
    return resources.get_subjects_by_semester(semester)


@api.get("/stats")
def dashboard_stats(resources: ResourceService = Depends(get_resource_service)):
    return resources.get_dashboard_stats()


# --- ৭. এরর রেসপন্স ---

async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message, "errors": exc.errors},
    )


# --- ৮. অ্যাপ তৈরি (Application Factory) ---

def create_app(settings: Optional[Settings] = None, bucket=None, mailer=None) -> FastAPI:
    # জরুরি কোনো ভেরিয়েবল না থাকলে ConfigError দিয়ে এখানেই থেমে যাবে
    settings = settings or load_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    engine = configure_engine(settings.database_url)
    models.Base.metadata.create_all(bind=engine)

    if bucket is None:
        supabase = create_client(settings.supabase_url, settings.supabase_key)
        bucket = supabase.storage.from_(settings.storage_bucket_id)

    app = FastAPI(title=settings.app_name, version=APP_VERSION)
    app.state.settings = settings
    app.state.storage = StorageService(bucket)
    app.state.mailer = mailer or SmtpMailer(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # বিল্ড করা ক্লায়েন্টের জন্য static ফোল্ডার (না থাকলে তৈরি করে নিবে)
    static_abs_path = os.path.join(os.path.dirname(__file__), "static")
    if not os.path.isdir(static_abs_path):
        os.makedirs(static_abs_path)
    app.mount("/static", StaticFiles(directory=static_abs_path), name="static")

    app.include_router(router)
    app.include_router(api)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)

    logger.info("%s started (bucket %s)", settings.app_name, settings.storage_bucket_id)
    return app


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)
