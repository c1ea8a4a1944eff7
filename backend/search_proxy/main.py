"""FastAPI 애플리케이션 메인 엔트리포인트"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from search_proxy.api.v1 import admin, analytics
from search_proxy.core.config import settings
from search_proxy.core.exceptions import (
    AnalyticsValidationError,
    RecordStoreUnavailableError,
)
from search_proxy.db.session import (
    close_database,
    get_database_client,
    initialize_database,
)
from search_proxy.external.redis_client import close_redis, initialize_redis
from search_proxy.services.cache_service import reset_cache_service
from search_proxy.services.expiry_sweeper import ExpirySweeper

# 로깅 설정
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 생명주기 관리"""
    # 시작 시
    logger.info("🚀 Search Analytics Proxy 시작...")

    db_ok = await initialize_database()
    if db_ok:
        logger.info("✅ Record store 초기화 완료")
    else:
        logger.warning("⚠️ Record store 초기화 실패, analytics writes will return 503")

    cache_ok = await initialize_redis()
    if cache_ok:
        logger.info("✅ Redis 캐시 초기화 완료")
    else:
        logger.warning("⚠️ Redis 캐시 사용 불가, every lookup is a miss")

    sweeper = None
    if settings.ENABLE_EXPIRY_SWEEPER and db_ok:
        sweeper = ExpirySweeper(get_database_client().session_maker)
        sweeper.start()

    yield
    # 종료 시
    logger.info("👋 Search Analytics Proxy 종료...")
    if sweeper is not None:
        await sweeper.stop()
    await close_redis()
    reset_cache_service()
    await close_database()


def create_app() -> FastAPI:
    """FastAPI 앱 팩토리"""
    app = FastAPI(
        title="Search Analytics Proxy API",
        description="""
## 🔎 Search analytics and response cache

Records search queries, attributes result clicks to the queries that
produced them, and caches upstream search responses.
        """,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS 설정
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Origin", "X-Session-Id", "X-Request-Id"],
    )

    @app.exception_handler(AnalyticsValidationError)
    async def validation_error_handler(request: Request, exc: AnalyticsValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": str(exc), "receivedFields": exc.received_fields},
        )

    @app.exception_handler(RecordStoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: RecordStoreUnavailableError):
        get_database_client().mark_unhealthy()
        logger.error(f"Record store unavailable on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=503,
            content={"error": "Analytics store unavailable", "type": type(exc).__name__},
        )

    # 라우터 등록
    app.include_router(analytics.router, prefix="/api/v1/analytics", tags=["Analytics"])
    app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])

    @app.get("/", tags=["Root"])
    async def root():
        """API 루트"""
        return {
            "message": "🔎 Search Analytics Proxy API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/api/v1/admin/health",
        }

    @app.get("/api/v1/health", tags=["Health"])
    async def health():
        """헬스 체크 (v1)"""
        return {"status": "healthy"}

    return app


# 앱 인스턴스 생성
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "search_proxy.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
