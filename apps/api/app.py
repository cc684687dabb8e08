"""
FastAPI приложение MigrantDesk
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
import uuid

from core.config.settings import settings
from core.database.session import close_database
from core.exceptions import AppError, ValidationError
from core.logging.logger import logger, setup_logging
from .main import api_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Настройка логирования при старте и закрытие пула БД при остановке."""
    setup_logging()
    logger.info("Application started", app=settings.app_name, environment=settings.environment)
    yield
    await close_database()
    logger.info("Application stopped", app=settings.app_name)


def create_app() -> FastAPI:
    """Создание FastAPI приложения."""
    app = FastAPI(
        title=settings.app_name,
        description="API учёта квот писем о найме, разрешений и инцидентов пропажи работников",
        version=settings.version,
        debug=settings.debug,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # В продакшене ограничить
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Middleware для логирования запросов
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Логирование всех HTTP запросов."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.time()

        logger.info(
            "HTTP Request started",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
            actor_id=request.headers.get("X-Actor-Id")
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                "HTTP Request failed",
                request_id=request_id,
                error=str(e),
                process_time=process_time
            )
            raise

        process_time = time.time() - start_time
        logger.info(
            "HTTP Request completed",
            request_id=request_id,
            status_code=response.status_code,
            process_time=process_time
        )

        # Добавляем заголовки для отслеживания
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(process_time)
        return response

    # Обработчики ошибок
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        """Перевод доменных ошибок в HTTP ответы."""
        logger.warning(
            "Request rejected",
            code=exc.code,
            status_code=exc.status_code,
            error=exc.message,
            path=request.url.path
        )
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Обработчик HTTP исключений."""
        logger.error(
            "HTTP Exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=request.url.path
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": "HTTP_ERROR", "message": str(exc.detail), "details": {}}
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Некорректный запрос отдаётся как 400 в общем формате ошибок."""
        errors = [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]
        logger.warning(
            "Validation Error",
            errors=errors,
            path=request.url.path
        )
        error = ValidationError("Request validation failed", {"errors": errors})
        return JSONResponse(status_code=error.status_code, content=jsonable_encoder(error.to_dict()))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Общий обработчик исключений."""
        logger.error(
            "General Exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True
        )
        return JSONResponse(
            status_code=500,
            content={"code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}}
        )

    # Подключаем API роутеры
    app.include_router(api_router)

    @app.get("/")
    async def root():
        """Корневой эндпоинт."""
        return {
            "app": settings.app_name,
            "version": settings.version,
            "status": "running",
            "docs": "/docs" if settings.debug else "disabled"
        }

    @app.get("/health")
    async def health_check():
        """Проверка состояния приложения."""
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "version": settings.version
        }

    return app


# Создаем экземпляр приложения
app = create_app()
