# pharmapos/api/router.py
from fastapi import APIRouter
from pharmapos.api import (
    routes_billing,
    routes_sales,
    routes_inventory,
)

api_router = APIRouter()

api_router.include_router(routes_billing.router, prefix="/billing", tags=["billing"])
api_router.include_router(routes_sales.router, prefix="/sales", tags=["sales"])
api_router.include_router(routes_inventory.router,
                          prefix="/inventory",
                          tags=["inventory"])
