"""
ASGI entrypoint: expose `app` pour les process managers / déploiements.

- En production, un process manager (ex: gunicorn -k uvicorn.workers.UvicornWorker) importe
  `payment_service.asgi:app`.
- Toute la configuration (routes, middlewares, lifespan) est centralisée dans app_setup.factory.
"""
from payment_service.app_setup.factory import create_app

app = create_app()
