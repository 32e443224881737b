from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    AsyncSession 트랜잭션 경계

        async with transaction(db):
            await AttendanceRepository(db).create_attendee(attendee)

    - 블록 정상 종료 시 commit, 예외(취소 포함) 시 rollback 후 재발생
    - 리포지토리는 flush까지만, commit은 이 매니저에서만
    - ChangeFeed publish는 블록 바깥(커밋 이후)에서 수행
    """
    try:
        yield db
        await db.commit()
    except BaseException:
        await db.rollback()
        raise
