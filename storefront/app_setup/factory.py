"""
Factory d’application pour les entrypoints (ex: storefront.asgi).
Ordonne les étapes d’initialisation de manière lisible et testable.
"""
import logging
import os
from fastapi import FastAPI
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_security_headers
from .exception_handlers import register_exception_handlers
from .routers import register_routers

def configure_logging() -> None:
    """Format unique pour les loggers applicatifs (uvicorn garde les siens). LOG_LEVEL: info par défaut."""
    level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

def create_app() -> FastAPI:
    """
    Construit l’app FastAPI avec le lifespan et enregistre:
      - middlewares de base et en-têtes de sécurité
      - gestionnaires d’exceptions
      - tous les routers (API, admin, health)
    """
    configure_logging()
    app = FastAPI(title="Storefront", lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_headers(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
