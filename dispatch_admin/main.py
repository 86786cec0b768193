"""
Main entry point for the dispatch admin backend
Builds the service container, registers routes and runs uvicorn
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dispatch_admin import __version__
from dispatch_admin.api import auth, configuration, connection, dashboard, email, esignature, service
from dispatch_admin.api.dependencies import AppServices
from dispatch_admin.api.error_handling import register_error_handlers
from dispatch_admin.config import AppConfig, ConfigError, load_config
from dispatch_admin.core.logging_manager import logging_manager
from dispatch_admin.core.models import utc_now_iso

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown"""
    admin_app: 'DispatchAdminApp' = app.state.admin_app

    logger.info(f"Starting dispatch admin v{__version__}...")
    await admin_app.startup()
    logger.info("Dispatch admin started successfully")

    yield

    logger.info("Shutting down dispatch admin...")
    await admin_app.shutdown()
    logger.info("Dispatch admin shutdown complete")


class DispatchAdminApp:
    """Admin backend application: one service container, one FastAPI app"""

    def __init__(self, config: AppConfig, services: Optional[AppServices] = None):
        self.config = config
        self.services = services or AppServices.from_config(config)

        self.app = FastAPI(
            title="Dispatch Admin",
            description="Configuration, schedule and status backend for the email dispatch worker",
            version=__version__,
            lifespan=lifespan,
        )
        self.app.state.admin_app = self
        self.app.state.services = self.services

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=config.api.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        register_error_handlers(self.app)

        self.app.include_router(dashboard.router, prefix="/api", tags=["Dashboard"])
        self.app.include_router(configuration.router, prefix="/api", tags=["Configuration"])
        self.app.include_router(service.router, prefix="/api", tags=["Service Control"])
        self.app.include_router(connection.router, prefix="/api", tags=["Connectivity"])
        self.app.include_router(auth.router, prefix="/api", tags=["Authentication"])
        self.app.include_router(email.router, prefix="/api", tags=["Email Worker"])
        self.app.include_router(esignature.router, prefix="/api", tags=["eSignature"])

        self._setup_health_route()

    def _setup_health_route(self):
        @self.app.get("/health")
        async def health_check():
            """Liveness plus presence of the config files; nothing is decrypted"""
            return {
                "status": "healthy",
                "version": __version__,
                "timestamp": utc_now_iso(),
                "config": {
                    "database": self.services.database_store.exists(),
                    "email": self.services.email_store.exists(),
                },
            }

    async def startup(self):
        config_dir = Path(self.config.storage.config_dir)
        if not config_dir.exists():
            logger.warning(f"Config directory {config_dir} does not exist yet; it is created on first save")
        if self.services.email_worker is None:
            logger.info("No email worker attached; worker endpoints will answer 503")
        if self.services.signing_service is None:
            logger.info("No signing service attached; eSignature endpoints will answer 503")

    async def shutdown(self):
        logger.info("Dispatch admin stopped accepting requests")


def create_app(config: Optional[AppConfig] = None,
               services: Optional[AppServices] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    if config is None:
        config = load_config()

    return DispatchAdminApp(config, services).app


def main():
    """Main entry point"""
    try:
        config = load_config()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    logging_manager.configure(config)

    try:
        app = create_app(config)

        logger.info(f"Starting dispatch admin on {config.api.host}:{config.api.port}")
        uvicorn.run(
            app,
            host=config.api.host,
            port=config.api.port,
            log_level=config.logging.level.lower(),
            access_log=True,
        )

    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    except Exception as e:
        logger.error(f"Failed to start dispatch admin: {e}", exc_info=True)
        sys.exit(1)
    finally:
        logging_manager.shutdown()


if __name__ == "__main__":
    main()
