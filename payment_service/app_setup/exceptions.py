"""
Gestionnaires d'exceptions.
- HTTPException: body JSON FastAPI standard {"detail": ...}.
- PaymentError non traduite par une vue (ex: store injoignable pendant le webhook):
  500 avec le code machine de l'erreur, sans le message interne.
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from payment_service.payments.errors import PaymentError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def json_http_errors(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))

    @app.exception_handler(PaymentError)
    async def payment_errors(request: Request, exc: PaymentError):
        logger.error("Unhandled %s on %s %s: %s", exc.code, request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": exc.code})
