import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.orm import relationship

from app.config import collection_ids
from app.database import Base

COLLECTIONS = collection_ids()


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    # টাইমজোন ছাড়া UTC, যাতে সব ডাটাবেসে তুলনা একই থাকে
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ১. আইডেন্টিটি টেবিল (Accounts, Sessions, Secrets)

class Account(Base):
    __tablename__ = "accounts"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    sessions = relationship("AuthSession", back_populates="account", cascade="all, delete-orphan")


class AuthSession(Base):
    __tablename__ = "auth_sessions"

    id = Column(String(32), primary_key=True, default=new_id)
    token = Column(String, unique=True, index=True, nullable=False)
    account_id = Column(String(32), ForeignKey("accounts.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    account = relationship("Account", back_populates="sessions")


class AuthSecret(Base):
    """One-time secrets behind recovery and verification links."""

    __tablename__ = "auth_secrets"

    id = Column(String(32), primary_key=True, default=new_id)
    account_id = Column(String(32), ForeignKey("accounts.id"), nullable=False, index=True)
    purpose = Column(String(16), nullable=False)  # recovery অথবা verification
    secret_hash = Column(String, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)


# ২. প্রোফাইল টেবিল (Users), আইডি অ্যাকাউন্টের আইডির সমান

class User(Base):
    __tablename__ = COLLECTIONS["users"]
    __table_args__ = (CheckConstraint("semester BETWEEN 1 AND 6", name="profile_semester_range"),)

    id = Column(String(32), primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, index=True, nullable=False)
    semester = Column(Integer, nullable=False)
    role = Column(String(16), default="student", nullable=False)
    college = Column(String, default="")
    verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


# ৩. রিসোর্স ও সাবজেক্ট টেবিল (Study Materials)

class Resource(Base):
    __tablename__ = COLLECTIONS["resources"]
    __table_args__ = (
        CheckConstraint("semester BETWEEN 1 AND 6", name="resource_semester_range"),
        CheckConstraint("download_count >= 0", name="resource_download_count"),
        CheckConstraint("rating BETWEEN 0 AND 5", name="resource_rating_range"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(String, index=True, nullable=False)
    description = Column(Text, default="")
    semester = Column(Integer, index=True, nullable=False)
    subject = Column(String, index=True, nullable=False)
    category = Column(String(16), index=True, nullable=False)  # notes, assignments, papers, videos, code
    file_id = Column(String, nullable=False)
    file_type = Column(String, nullable=False)
    file_size = Column(Integer, default=0, nullable=False)
    uploaded_by = Column(String(32), index=True, nullable=False)
    upload_date = Column(DateTime, default=utcnow, index=True, nullable=False)
    download_count = Column(Integer, default=0, nullable=False)
    rating = Column(Float, default=0, nullable=False)
    status = Column(String(16), default="active", index=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    tag_rows = relationship(
        "ResourceTag",
        cascade="all, delete-orphan",
        order_by="ResourceTag.tag",
        lazy="selectin",
    )
    tags = association_proxy("tag_rows", "tag")


class ResourceTag(Base):
    __tablename__ = f"{COLLECTIONS['resources']}_tags"
    __table_args__ = (UniqueConstraint("resource_id", "tag", name="unique_resource_tag"),)

    id = Column(Integer, primary_key=True)
    resource_id = Column(
        String(32), ForeignKey(f"{COLLECTIONS['resources']}.id", ondelete="CASCADE"), index=True, nullable=False
    )
    tag = Column(String, index=True, nullable=False)


class Subject(Base):
    __tablename__ = COLLECTIONS["subjects"]

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    code = Column(String, unique=True, index=True, nullable=False)
    semester = Column(Integer, index=True, nullable=False)
    credits = Column(Integer, default=0, nullable=False)
    description = Column(Text, default="")
    prerequisites = Column(JSON, default=list, nullable=False)  # সাবজেক্ট কোডের ক্রমানুসারে লিস্ট
    resource_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


# ৪. ডাউনলোড ও বুকমার্ক টেবিল (Engagement)

class Download(Base):
    __tablename__ = COLLECTIONS["downloads"]

    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), index=True, nullable=False)
    resource_id = Column(String(32), index=True, nullable=False)
    download_date = Column(DateTime, default=utcnow, index=True, nullable=False)
    file_size = Column(Integer, default=0, nullable=False)
    ip_address = Column(String, default="unknown", nullable=False)


class Bookmark(Base):
    __tablename__ = COLLECTIONS["bookmarks"]
    __table_args__ = (UniqueConstraint("user_id", "resource_id", name="unique_bookmark"),)

    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), index=True, nullable=False)
    resource_id = Column(String(32), index=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True, nullable=False)
