"""Repository over one AsyncSession.

Groups the queries the API and the ingest step need (accounts, orgs,
sessions, access tokens, boards, assets, files, tags, audit log). Writes
are flushed so generated ids are available; the caller commits.
"""

from __future__ import annotations

import secrets
from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import (
    AccessToken,
    Asset,
    AssetFile,
    AssetTag,
    AuditLog,
    Board,
    BoardAsset,
    Membership,
    Org,
    Session,
    Tag,
    User,
    utcnow,
)


class AdBoardStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def commit(self) -> None:
        await self.db.commit()

    async def _add(self, obj):
        self.db.add(obj)
        await self.db.flush()
        return obj

    # users / orgs

    async def create_user(self, email: str, name: str | None = None) -> User:
        return await self._add(User(email=email, name=name))

    async def create_org(self, name: str, owner_id: str) -> Org:
        org = await self._add(Org(name=name))
        await self._add(Membership(user_id=owner_id, org_id=org.id, role="owner"))
        return org

    async def user_org_ids(self, user_id: str) -> list[str]:
        """Orgs the user belongs to, oldest first."""
        result = await self.db.execute(
            select(Org.id)
            .join(Membership, Membership.org_id == Org.id)
            .where(Membership.user_id == user_id)
            .order_by(Org.created_at, Org.id)
        )
        return list(result.scalars())

    async def has_org_access(self, user_id: str, org_id: str) -> bool:
        result = await self.db.execute(
            select(Membership.id).where(Membership.user_id == user_id, Membership.org_id == org_id)
        )
        return result.first() is not None

    async def get_or_create_default_org(self, user_id: str) -> str:
        org_ids = await self.user_org_ids(user_id)
        if org_ids:
            return org_ids[0]
        user = await self.db.get(User, user_id)
        label = user.name or user.email.split("@")[0]
        return (await self.create_org(f"{label}'s Workspace", owner_id=user_id)).id

    # sessions / tokens

    async def create_session(self, user_id: str, ttl: timedelta = timedelta(days=30)) -> str:
        token = secrets.token_urlsafe(32)
        await self._add(Session(token=token, user_id=user_id, expires=utcnow() + ttl))
        return token

    async def get_session_user(self, token: str | None) -> User | None:
        if not token:
            return None
        session = await self.db.get(Session, token)
        if session is None or session.expires <= utcnow():
            return None
        return await self.db.get(User, session.user_id)

    async def create_access_token(self, user_id: str, name: str = "extension") -> str:
        token = f"adb_{secrets.token_urlsafe(24)}"
        await self._add(AccessToken(token=token, user_id=user_id, name=name))
        return token

    async def get_token_user(self, token: str | None) -> User | None:
        if not token:
            return None
        record = await self.db.get(AccessToken, token)
        if record is None:
            return None
        record.last_used_at = utcnow()
        await self.db.flush()
        return await self.db.get(User, record.user_id)

    # boards

    async def create_board(
        self, org_id: str, name: str, description: str | None = None, is_default: bool = False,
    ) -> Board:
        return await self._add(Board(
            org_id=org_id, name=name, description=description, is_default=is_default,
        ))

    async def get_board(self, board_id: str, org_id: str | None = None) -> Board | None:
        board = await self.db.get(Board, board_id)
        if board is None or (org_id is not None and board.org_id != org_id):
            return None
        return board

    async def list_boards(self, org_ids: list[str], offset: int = 0, limit: int | None = None) -> list[Board]:
        """Newest first."""
        query = (
            select(Board)
            .where(Board.org_id.in_(org_ids))
            .order_by(Board.created_at.desc(), Board.id)
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars())

    async def find_default_board(self, org_id: str) -> Board | None:
        result = await self.db.execute(
            select(Board).where(Board.org_id == org_id, Board.is_default.is_(True)).limit(1)
        )
        return result.scalar_one_or_none()

    async def board_asset_count(self, board_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(BoardAsset).where(BoardAsset.board_id == board_id)
        )
        return result.scalar_one()

    # assets

    async def find_asset(self, fb_ad_id: str, org_id: str) -> Asset | None:
        result = await self.db.execute(
            select(Asset).where(Asset.fb_ad_id == fb_ad_id, Asset.org_id == org_id)
        )
        return result.scalar_one_or_none()

    async def create_asset(self, **fields) -> Asset:
        return await self._add(Asset(**fields))

    async def add_file(self, asset_id: str, url: str, media_type: str, order: int) -> AssetFile:
        return await self._add(AssetFile(asset_id=asset_id, type=media_type, url=url, order=order))

    async def asset_files(self, asset_id: str) -> list[AssetFile]:
        result = await self.db.execute(
            select(AssetFile).where(AssetFile.asset_id == asset_id).order_by(AssetFile.order)
        )
        return list(result.scalars())

    async def asset_board_ids(self, asset_id: str) -> list[str]:
        result = await self.db.execute(
            select(BoardAsset.board_id)
            .where(BoardAsset.asset_id == asset_id)
            .order_by(BoardAsset.added_at)
        )
        return list(result.scalars())

    async def link_board(self, board_id: str, asset_id: str) -> None:
        if await self.db.get(BoardAsset, (board_id, asset_id)) is None:
            await self._add(BoardAsset(board_id=board_id, asset_id=asset_id))

    # tags / audit

    async def find_or_create_tag(self, org_id: str, name: str) -> Tag:
        result = await self.db.execute(select(Tag).where(Tag.org_id == org_id, Tag.name == name))
        tag = result.scalar_one_or_none()
        if tag is None:
            tag = await self._add(Tag(org_id=org_id, name=name))
        return tag

    async def link_tag(self, asset_id: str, tag_id: str) -> None:
        if await self.db.get(AssetTag, (asset_id, tag_id)) is None:
            await self._add(AssetTag(asset_id=asset_id, tag_id=tag_id))

    async def log_audit(self, *, metadata: dict | None = None, **fields) -> AuditLog:
        return await self._add(AuditLog(meta=metadata or {}, **fields))

    async def latest_audit(self) -> AuditLog | None:
        result = await self.db.execute(select(AuditLog).order_by(AuditLog.id.desc()).limit(1))
        return result.scalar_one_or_none()

    async def count_tags(self, org_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Tag).where(Tag.org_id == org_id)
        )
        return result.scalar_one()
