from __future__ import annotations

from typing import Sequence
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import RecordPersistError
from app.db.models import Video


class VideoRepository:
    """Metadata store for :class:`Video` records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, video_id: str) -> Video | None:
        return await self.session.get(Video, video_id)

    async def list_for_user(self, user_id: str) -> Sequence[Video]:
        stmt = select(Video).where(Video.user_id == user_id).order_by(Video.created_at.desc())
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def create(self, *, user_id: str, title: str, description: str | None) -> Video:
        video = Video(id=str(uuid4()), user_id=user_id, title=title, description=description)
        self.session.add(video)
        await self._commit()
        await self.session.refresh(video)
        return video

    async def update(self, video: Video) -> Video:
        self.session.add(video)
        await self._commit()
        await self.session.refresh(video)
        return video

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise RecordPersistError(str(exc)) from exc


__all__ = ["VideoRepository"]
