"""FastAPI server setup and routes"""
from contextlib import asynccontextmanager
from typing import List
from fastapi import FastAPI, Response
from config import Config
from metrics.registry import MetricsRegistry
from metrics.exporters.prometheus import CONTENT_TYPE
from logging_config import get_logger
from middleware.request_logging import RequestLoggingMiddleware
from .poller import TargetPoller


logger = get_logger(__name__)


class MetricsServer:
    """FastAPI server exposing the registry to Prometheus scrapes"""

    def __init__(self, config: Config, registry: MetricsRegistry, pollers: List[TargetPoller]):
        self.config = config
        self.registry = registry
        self.pollers = pollers
        self.app = FastAPI(
            title="MySQL Info Exporter",
            version=config.service_version,
            docs_url=None,  # Only /metrics is served
            redoc_url=None,
            openapi_url=None,
            lifespan=self._lifespan
        )

        self._setup_middleware()
        self._setup_routes()

    def _setup_middleware(self):
        """Setup middleware"""
        if self.config.enable_request_logging:
            self.app.add_middleware(RequestLoggingMiddleware)

    def _setup_routes(self):
        """Setup FastAPI routes"""

        @self.app.get('/metrics', response_class=Response)
        def get_metrics():
            """Serve the current registry in Prometheus format"""
            return Response(self.registry.render(), media_type=CONTENT_TYPE)

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        """Start pollers with the application and stop them on shutdown"""
        logger.info(
            "Application startup initiated",
            service_name=self.config.service_name,
            service_version=self.config.service_version,
            targets=[p.target.name for p in self.pollers],
            event_type="server_startup"
        )

        for poller in self.pollers:
            poller.start()

        try:
            yield
        finally:
            logger.info("Shutting down metrics exporter", event_type="server_shutdown")
            for poller in self.pollers:
                await poller.stop()

    def get_app(self) -> FastAPI:
        """Get the FastAPI application"""
        return self.app
