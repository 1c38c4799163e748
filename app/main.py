# app/main.py

import logging
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from apscheduler.schedulers.asyncio import AsyncIOScheduler

# Конфигурация и ядро
from app.core.config import settings as config
from app.core.logging_config import setup_logging
from app.core.redis import redis_client

# Модели должны быть зарегистрированы до первого запроса
from app.models import loyalty, notification, order as order_models, user  # noqa: F401

# Роутеры FastAPI
from app.routers import admin as admin_router, loyalty as loyalty_router, order as order_router

# Фоновые задачи и сервисы
from app.services.loyalty_tiers import get_configured_tiers
from app.services.user_levels import refresh_user_tiers

# --- Инициализация ---
logger = logging.getLogger(__name__)
scheduler = AsyncIOScheduler()

STARTUP_LOCK_KEY = "app_startup_lock"

# --- Обработчик критических ошибок ---
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Глобальный обработчик для всех необработанных исключений.
    """
    logger.critical(f"Unhandled exception for request: {request.method} {request.url}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error."},
    )

# --- Lifespan Manager (запуск и остановка приложения) ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Application lifespan startup...")

    tiers = get_configured_tiers()
    logger.info("Loyalty tiers: " + ", ".join(f"{t.name} >= {t.min_lifetime_spend} ({t.percent}%)" for t in tiers))

    # Блокировка через Redis, чтобы планировщик запускался только в одном воркере
    is_main_worker = await redis_client.set(STARTUP_LOCK_KEY, "1", ex=60, nx=True)

    if is_main_worker:
        logger.info("This is the main worker. Starting scheduler...")
        if not scheduler.running:
            scheduler.add_job(
                refresh_user_tiers, 'cron',
                hour=config.TIER_REFRESH_HOUR, minute=0, timezone=config.SCHEDULER_TIMEZONE
            )
            scheduler.start()
            logger.info("Scheduler started with background jobs.")
    else:
        logger.info("This is a secondary worker. Skipping scheduler setup.")

    yield

    # Код при остановке
    if is_main_worker:
        logger.info("Main worker shutting down...")
        if scheduler.running:
            scheduler.shutdown()
            logger.info("Scheduler shut down.")
        await redis_client.delete(STARTUP_LOCK_KEY)
    else:
        logger.info("Secondary worker shutting down.")

# --- Создание FastAPI приложения ---
app = FastAPI(
    title="Asia Pharm Shop Service",
    description="Backend for the multi-store shop: orders and loyalty cashback",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS + [config.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Регистрация обработчика исключений ---
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Подключение роутеров FastAPI ---
api_router = APIRouter(prefix="/api/v1")

api_router.include_router(order_router.router, tags=["Orders"])
api_router.include_router(loyalty_router.router, tags=["Loyalty"])

# Админские эндпоинты
api_router.include_router(admin_router.router, prefix="/admin", tags=["Admin"])

app.include_router(api_router)
