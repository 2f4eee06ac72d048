from fastapi import APIRouter

from loan_wizard.api.v1.routers import health, loan_products, wizard_sessions

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(loan_products.router)
api_router.include_router(wizard_sessions.router)

__all__ = ["api_router"]
