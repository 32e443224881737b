import logging
from contextlib import asynccontextmanager
from os import getenv

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from eventhub.db import engine, init_models  # noqa: E402
from eventhub.realtime.change_feed import ChangeFeed  # noqa: E402
from eventhub.routers.event import router as event_router  # noqa: E402
from eventhub.services.attendance_store import KeyedLocks  # noqa: E402
from eventhub.dependencies.error_handlers import register_error_handlers  # noqa: E402
from eventhub.exceptions import is_development  # noqa: E402
from eventhub.utils.logging_config import setup_logging  # noqa: E402

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 프로세스 공유 자원: 변경 알림 채널 + RSVP 키별 lock
    app.state.change_feed = ChangeFeed()
    app.state.attendance_locks = KeyedLocks()

    # 개발 환경: alembic 없이 테이블 생성
    if is_development() and getenv("AUTO_CREATE_TABLES", "true").lower() == "true":
        await init_models(engine)
        logger.info("Database tables ensured (development)")

    yield

    app.state.change_feed.close()
    await engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(title="EventHub", lifespan=lifespan)

# 전역 예외 핸들러 등록
register_error_handlers(app)

# CORS 설정
cors_origins = getenv("CORS_ORIGINS", "*")
if cors_origins == "*":
    origins = ["*"]
    allow_credentials = False
else:
    origins = [origin.strip() for origin in cors_origins.split(",")]
    # 개발 환경: localhost:5173 자동 추가 (중복 방지)
    dev_origin = "http://localhost:5173"
    if dev_origin not in origins:
        origins.append(dev_origin)
    allow_credentials = True

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
async def health():
    return {"status": "ok"}

app.include_router(event_router, prefix="/v1", tags=["events"])
