from datetime import datetime, timezone
from os import getenv
from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy import DateTime, TypeDecorator
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class UTCDateTime(TypeDecorator):
    """
    timezone-aware UTC datetime 컬럼
    - PostgreSQL: timestamptz 그대로 사용
    - SQLite: tz 정보 없이 저장되므로 저장 전 UTC 변환, 조회 후 UTC tz 부착
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_async_url(url: str) -> str:
    """동기 드라이버 URL을 async 드라이버 URL로 변환 (asyncpg / aiosqlite)"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def build_engine(url: str) -> AsyncEngine:
    return create_async_engine(to_async_url(url), pool_pre_ping=True)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


DATABASE_URL = getenv("DATABASE_URL", "sqlite+aiosqlite:///./eventhub.db")
engine = build_engine(DATABASE_URL)
SessionLocal = build_session_factory(engine)


async def init_models(target: AsyncEngine) -> None:
    """개발/테스트용 테이블 생성 (운영은 alembic 사용)"""
    # 모든 모델을 import하여 metadata에 등록
    from eventhub import models  # noqa: F401

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI 의존성: 세션 팩토리 (테스트에서 override)"""
    return SessionLocal


async def get_db(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI 의존성으로 사용할 DB 세션"""
    async with session_factory() as db:
        yield db
