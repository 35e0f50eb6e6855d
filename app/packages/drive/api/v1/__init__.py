"""API v1 汇总路由：统一挂载所有版本化的子路由。"""

from fastapi import APIRouter

from app.packages.drive.api.v1.endpoints import ai, files, panels, usage, workspaces

api_router = APIRouter()
api_router.include_router(files.router)
api_router.include_router(usage.router)
api_router.include_router(ai.router)
api_router.include_router(workspaces.router)
api_router.include_router(panels.router)
