from fastapi import APIRouter

from app.api.v1 import calendar, export, import_routes, taxonomy

api_router = APIRouter()

api_router.include_router(taxonomy.router, prefix="/taxonomy", tags=["taxonomy"])
api_router.include_router(import_routes.router, prefix="/import", tags=["import"])
api_router.include_router(export.router, prefix="/export", tags=["export"])
api_router.include_router(calendar.router, prefix="/calendar", tags=["calendar"])
