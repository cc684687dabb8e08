"""
Главный API роутер MigrantDesk
"""
from fastapi import APIRouter

from apps.api.routers.deployments import router as deployments_router
from apps.api.routers.permits import router as permits_router
from apps.api.routers.runaways import router as runaways_router
from apps.api.routers.recruitment_letters import router as recruitment_letters_router

# Создаем главный роутер
api_router = APIRouter(prefix="/api/v1")

# Подключаем роутеры
api_router.include_router(deployments_router)
api_router.include_router(permits_router)
api_router.include_router(runaways_router)
api_router.include_router(recruitment_letters_router)
