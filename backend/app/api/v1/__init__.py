"""
API v1 Router - Clinic Warehouse
"""
from fastapi import APIRouter
from app.api.v1.endpoints import warehouse

router = APIRouter()

# Warehouse (storage transactions + stock queries)
router.include_router(
    warehouse.router,
    prefix="/warehouse",
    tags=["warehouse"]
)
