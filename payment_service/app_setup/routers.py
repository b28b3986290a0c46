"""
Registre central des routers.
- API: payments (création d'intent, page de paiement, webhook Stripe)
- Health: health_router
"""
from fastapi import FastAPI
from payment_service.payments import views as payments_views
from payment_service.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    app.include_router(payments_views.router)
    # Health & monitoring
    app.include_router(health_router)
