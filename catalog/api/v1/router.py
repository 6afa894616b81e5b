"""API router - aggregates all endpoint routers."""

from fastapi import APIRouter

from catalog.api.v1 import products, actresses, search, public_lists, sales, performers, cron

api_router = APIRouter()

api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(actresses.router, prefix="/actresses", tags=["actresses"])
api_router.include_router(search.router, prefix="/search", tags=["search"])
api_router.include_router(public_lists.router, prefix="/public-lists", tags=["public-lists"])
api_router.include_router(sales.router, prefix="/sales", tags=["sales"])
api_router.include_router(performers.router, prefix="/performers", tags=["performers"])
api_router.include_router(cron.router, prefix="/cron", tags=["cron"])
