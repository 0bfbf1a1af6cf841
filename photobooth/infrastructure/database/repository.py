# photobooth/infrastructure/database/repository.py
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, TypeVar

from pydantic import ValidationError
from sqlalchemy import delete, select

from photobooth.config.logger import get_logger
from photobooth.domain.models import Frame, PhotoSession, normalize_frame_record, normalize_session_record
from photobooth.infrastructure.database.models import FrameRow, PhotoSessionRow

logger = get_logger(__name__, tag="DB")

T = TypeVar("T")


def _load_all(rows: List[Dict[str, Any]], loader: Callable[[Dict[str, Any]], T], kind: str) -> List[T]:
    records = []
    for raw in rows:
        try:
            records.append(loader(raw))
        except ValidationError as e:
            # Best effort: one broken record must not hide the rest.
            logger.warning(f"Record {kind} rusak dilewati (id={raw.get('id')!r}): {e.error_count()} error")
    return records


def _load_one(raw: Optional[Dict[str, Any]], loader: Callable[[Dict[str, Any]], T], kind: str) -> Optional[T]:
    if raw is None:
        return None
    loaded = _load_all([raw], loader, kind)
    return loaded[0] if loaded else None


class RecordStore(ABC):
    """Key-value persistence for frames and photo sessions, keyed by id."""

    @abstractmethod
    async def list_frames(self) -> List[Frame]: ...

    @abstractmethod
    async def get_frame(self, frame_id: str) -> Optional[Frame]: ...

    @abstractmethod
    async def save_frame(self, frame: Frame) -> None: ...

    @abstractmethod
    async def delete_frame(self, frame_id: str) -> bool: ...

    @abstractmethod
    async def list_sessions(self) -> List[PhotoSession]: ...

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[PhotoSession]: ...

    @abstractmethod
    async def save_session(self, session: PhotoSession) -> None: ...

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool: ...


class InMemoryRecordStore(RecordStore):
    """Keeps plain JSON dicts so records round-trip exactly like a real store."""

    def __init__(self):
        self.frames: Dict[str, Dict[str, Any]] = {}
        self.sessions: Dict[str, Dict[str, Any]] = {}

    async def list_frames(self) -> List[Frame]:
        return _load_all(list(self.frames.values()), normalize_frame_record, "frame")

    async def get_frame(self, frame_id: str) -> Optional[Frame]:
        raw = self.frames.get(frame_id)
        return _load_one(raw, normalize_frame_record, "frame")

    async def save_frame(self, frame: Frame) -> None:
        self.frames[frame.id] = frame.to_record()

    async def delete_frame(self, frame_id: str) -> bool:
        return self.frames.pop(frame_id, None) is not None

    async def list_sessions(self) -> List[PhotoSession]:
        return _load_all(list(self.sessions.values()), normalize_session_record, "session")

    async def get_session(self, session_id: str) -> Optional[PhotoSession]:
        raw = self.sessions.get(session_id)
        return _load_one(raw, normalize_session_record, "session")

    async def save_session(self, session: PhotoSession) -> None:
        self.sessions[session.id] = session.to_record()

    async def delete_session(self, session_id: str) -> bool:
        return self.sessions.pop(session_id, None) is not None


class SqlRecordStore(RecordStore):
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def list_frames(self) -> List[Frame]:
        async with self.session_factory() as db:
            rows = (await db.execute(select(FrameRow).order_by(FrameRow.create_time))).scalars().all()
        return _load_all([r.data for r in rows], normalize_frame_record, "frame")

    async def get_frame(self, frame_id: str) -> Optional[Frame]:
        async with self.session_factory() as db:
            row = await db.get(FrameRow, frame_id)
        return _load_one(row.data if row is not None else None, normalize_frame_record, "frame")

    async def save_frame(self, frame: Frame) -> None:
        async with self.session_factory() as db:
            await db.merge(FrameRow(
                id=frame.id,
                name=frame.name,
                create_time=frame.created_at.replace(tzinfo=None),
                data=frame.to_record(),
            ))
            await db.commit()

    async def delete_frame(self, frame_id: str) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(delete(FrameRow).where(FrameRow.id == frame_id))
            await db.commit()
        return result.rowcount > 0

    async def list_sessions(self) -> List[PhotoSession]:
        async with self.session_factory() as db:
            rows = (await db.execute(select(PhotoSessionRow).order_by(PhotoSessionRow.create_time))).scalars().all()
        return _load_all([r.data for r in rows], normalize_session_record, "session")

    async def get_session(self, session_id: str) -> Optional[PhotoSession]:
        async with self.session_factory() as db:
            row = await db.get(PhotoSessionRow, session_id)
        return _load_one(row.data if row is not None else None, normalize_session_record, "session")

    async def save_session(self, session: PhotoSession) -> None:
        async with self.session_factory() as db:
            await db.merge(PhotoSessionRow(
                id=session.id,
                frame_id=session.frame_id,
                create_time=session.created_at.replace(tzinfo=None),
                data=session.to_record(),
            ))
            await db.commit()

    async def delete_session(self, session_id: str) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(delete(PhotoSessionRow).where(PhotoSessionRow.id == session_id))
            await db.commit()
        return result.rowcount > 0
