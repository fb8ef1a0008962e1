"""AdBoard DB 모델 — 계정/조직, 보드, 광고 자산, 태그, 감사 로그. (SQLite/PostgreSQL 호환)"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """naive UTC (SQLite 는 tz 정보를 저장하지 않음)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


# ─────────────────────────────────────────────
# 1. 사용자 / 조직
# ─────────────────────────────────────────────
class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_id)
    email = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class Org(Base):
    __tablename__ = "orgs"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class Membership(Base):
    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "org_id", name="uq_membership_user_org"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
    org_id = Column(String(32), ForeignKey("orgs.id"), nullable=False)
    role = Column(String, default="owner")  # "owner", "member"


# ─────────────────────────────────────────────
# 2. 인증 — 웹 세션 쿠키 / 개인 액세스 토큰
# ─────────────────────────────────────────────
class Session(Base):
    __tablename__ = "sessions"

    token = Column(String, primary_key=True)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=False)
    expires = Column(DateTime, nullable=False)


class AccessToken(Base):
    __tablename__ = "access_tokens"

    token = Column(String, primary_key=True)  # "adb_..."
    user_id = Column(String(32), ForeignKey("users.id"), nullable=False)
    name = Column(String, default="extension")
    created_at = Column(DateTime, default=utcnow)
    last_used_at = Column(DateTime, nullable=True)


# ─────────────────────────────────────────────
# 3. 보드
# ─────────────────────────────────────────────
class Board(Base):
    __tablename__ = "boards"
    __table_args__ = (
        Index("ix_boards_org", "org_id"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    org_id = Column(String(32), ForeignKey("orgs.id"), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)


# ─────────────────────────────────────────────
# 4. 광고 자산 + 미디어 파일
# ─────────────────────────────────────────────
class Asset(Base):
    __tablename__ = "assets"
    __table_args__ = (
        UniqueConstraint("fb_ad_id", "org_id", name="uq_asset_fb_ad_org"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    org_id = Column(String(32), ForeignKey("orgs.id"), nullable=False)
    platform = Column(String, default="facebook")
    fb_ad_id = Column(String, nullable=False)
    fb_page_id = Column(String, nullable=True)
    ad_url = Column(Text, nullable=False)
    brand_name = Column(String, nullable=True)
    headline = Column(Text, nullable=True)
    cta = Column(String, nullable=True)
    ad_text = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    first_seen_date = Column(DateTime, nullable=True)
    last_seen_date = Column(DateTime, nullable=True)
    runtime_days = Column(Integer, nullable=True)
    created_by_id = Column(String(32), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)


class AssetFile(Base):
    __tablename__ = "asset_files"
    __table_args__ = (
        Index("ix_asset_files_asset", "asset_id"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    asset_id = Column(String(32), ForeignKey("assets.id"), nullable=False)
    type = Column(String, nullable=False)  # "image", "video"
    url = Column(Text, nullable=False)
    order = Column(Integer, default=0)


class BoardAsset(Base):
    __tablename__ = "board_assets"

    board_id = Column(String(32), ForeignKey("boards.id"), primary_key=True)
    asset_id = Column(String(32), ForeignKey("assets.id"), primary_key=True)
    added_at = Column(DateTime, default=utcnow)


# ─────────────────────────────────────────────
# 5. 태그
# ─────────────────────────────────────────────
class Tag(Base):
    __tablename__ = "tags"
    __table_args__ = (
        UniqueConstraint("org_id", "name", name="uq_tag_org_name"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    org_id = Column(String(32), ForeignKey("orgs.id"), nullable=False)
    name = Column(String, nullable=False)


class AssetTag(Base):
    __tablename__ = "asset_tags"

    asset_id = Column(String(32), ForeignKey("assets.id"), primary_key=True)
    tag_id = Column(String(32), ForeignKey("tags.id"), primary_key=True)


# ─────────────────────────────────────────────
# 6. 감사 로그
# ─────────────────────────────────────────────
class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String, nullable=False)  # "CREATE"
    resource = Column(String, nullable=False)  # "ASSET"
    resource_id = Column(String(32), nullable=False)
    user_id = Column(String(32), nullable=False)
    org_id = Column(String(32), nullable=False)
    meta = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime, default=utcnow)
