from fastapi import APIRouter

from paygate.api.routes import auth, health, payments, pro

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(payments.router, prefix="/pay", tags=["payments"])
api_router.include_router(pro.router, prefix="/pro", tags=["pro"])
