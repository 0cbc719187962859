# matecloud/api/router.py
from fastapi import APIRouter
from matecloud.modules.plans.router import router as plans_router, admin_router as admin_plans_router
from matecloud.modules.profiles.router import router as profiles_router
from matecloud.modules.pix_orders.router import router as pix_router, admin_router as admin_pix_router
from matecloud.modules.settings.router import router as settings_router
from matecloud.modules.admin.router import router as admin_router

api_router = APIRouter()

api_router.include_router(plans_router,       prefix="/plans",       tags=["plans"])
api_router.include_router(profiles_router,    prefix="/profile",     tags=["profile"])
api_router.include_router(pix_router,         prefix="/pix",         tags=["pix"])
api_router.include_router(settings_router,    prefix="/settings",    tags=["settings"])
api_router.include_router(admin_plans_router, prefix="/admin/plans", tags=["admin"])
api_router.include_router(admin_pix_router,   prefix="/admin/pix",   tags=["admin"])
api_router.include_router(admin_router,       prefix="/admin",       tags=["admin"])
