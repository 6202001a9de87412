"""
SuperMockio Mock Server

FastAPI application exposing the service management API and the mock endpoints.

Features:
- Upload OpenAPI documents (YAML or JSON) and generate their mock responses
- Serve stored responses under /mocks/{owner}/{name}/{version}/...
- Response selection via X-SuperMockio-Status / X-SuperMockio-Example headers
- Owner/collaborator access control and collaborator management
- Admin API for metrics and configuration
- Request logging middleware and JSON error envelopes
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..common.ai_service import AIService, get_ai_service
from ..common.config import MockerSettings
from ..common.utils import parse_openapi_document
from ..errors import (
    AIGenerationError,
    DispatchNotFound,
    InvalidRequest,
    NotAuthenticated,
    PermissionDenied,
    ServiceConflict,
    ServiceNotFound,
    SuperMockioError,
)
from .dispatcher import MockDispatcher
from .ingestor import ServiceIngestor, create_rng
from .store import MemoryStore, Principal, Service, ServiceStore

USER_HEADER = 'X-SuperMockio-User'
ROLES_HEADER = 'X-SuperMockio-Roles'
STATUS_HEADER = 'X-SuperMockio-Status'
EXAMPLE_HEADER = 'X-SuperMockio-Example'

MOCK_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS", "TRACE"]


@dataclass
class MockConfig:
    """Configuration for the server process."""

    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "info"

    # JSON snapshot loaded on start and saved after every change
    data_file: Optional[str] = None

    # Admin API
    admin_enabled: bool = True
    admin_prefix: str = "/__admin__"
    # Role the caller must hold to use the admin API (None: open)
    admin_role: Optional[str] = None


@dataclass
class MockMetrics:
    """Track mock server metrics."""

    total_requests: int = 0
    matched_requests: int = 0
    substituted_requests: int = 0
    unmatched_requests: int = 0
    services_ingested: int = 0
    records_generated: int = 0
    start_time: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        uptime_seconds = (datetime.now() - datetime.fromisoformat(self.start_time)).total_seconds()
        served = self.matched_requests + self.substituted_requests
        return {
            'total_requests': self.total_requests,
            'matched_requests': self.matched_requests,
            'substituted_requests': self.substituted_requests,
            'unmatched_requests': self.unmatched_requests,
            'services_ingested': self.services_ingested,
            'records_generated': self.records_generated,
            'match_rate': round((served / self.total_requests * 100) if self.total_requests > 0 else 0, 2),
            'uptime_seconds': round(uptime_seconds, 2),
            'start_time': self.start_time
        }


def get_principal(request: Request) -> Principal:
    """
    Resolve the caller of a management request.

    An authenticator placed in front of the app may set
    `request.state.principal`; otherwise the X-SuperMockio-User and
    X-SuperMockio-Roles headers are used.

    Raises:
        NotAuthenticated: If no caller can be identified
    """
    principal = getattr(request.state, 'principal', None)
    if isinstance(principal, Principal):
        return principal

    user_id = (request.headers.get(USER_HEADER) or '').strip()
    if not user_id:
        raise NotAuthenticated(f"Authentication required (missing {USER_HEADER} header)")

    roles = [role.strip() for role in (request.headers.get(ROLES_HEADER) or '').split(',') if role.strip()]
    return Principal(user_id=user_id, roles=roles)


def _empty_body_status(status_code: int) -> bool:
    return status_code < 200 or status_code in (204, 304)


class MockServer:
    """
    SuperMockio HTTP server.

    Example:
        # In-memory store, defaults from the environment
        server = MockServer()
        server.start(port=8080)

        # Persist services between runs
        server = MockServer(config=MockConfig(data_file='supermockio-data.json'))
        server.start()

        # Testing
        client = TestClient(MockServer(store=MemoryStore()).get_app())
    """

    def __init__(
        self,
        store: Optional[ServiceStore] = None,
        config: Optional[MockConfig] = None,
        settings: Optional[MockerSettings] = None,
        ai_service: Optional[AIService] = None,
        ingestor: Optional[ServiceIngestor] = None,
        dispatcher: Optional[MockDispatcher] = None
    ):
        """
        Initialize mock server.

        Args:
            store: Service store (loaded from config.data_file or empty if None)
            config: Server options
            settings: AI/generation settings (read from the environment if None)
            ai_service: AI collaborator (built from settings if None)
            ingestor: Optional ServiceIngestor (will create if None)
            dispatcher: Optional MockDispatcher (will create if None)
        """
        self.config = config or MockConfig()
        self.settings = settings or MockerSettings.from_env()
        self.metrics = MockMetrics()

        # Setup logging first (before loading data)
        self.logger = logging.getLogger("supermockio.mock")
        logging.getLogger("supermockio").setLevel(getattr(logging, self.config.log_level.upper()))

        self.store = store if store is not None else self._load_store()
        self.ai_service = ai_service or self._create_ai_service()

        rng = create_rng(self.settings.random_seed)
        self.ingestor = ingestor or ServiceIngestor(self.store, ai_service=self.ai_service, rng=rng)
        self.dispatcher = dispatcher or MockDispatcher(self.store, rng=rng)

        self.app = self._create_app()

    def _load_store(self) -> ServiceStore:
        data_file = self.config.data_file
        if data_file and Path(data_file).exists():
            return MemoryStore.load(data_file)
        return MemoryStore()

    def _create_ai_service(self) -> Optional[AIService]:
        if not self.settings.ai_service_name:
            if self.settings.ai_generation_enabled:
                self.logger.warning("AI generation is enabled but AI_SERVICE_NAME is not set")
            return None

        try:
            return get_ai_service(self.settings)
        except AIGenerationError as e:
            self.logger.warning(f"AI service unavailable: {e}")
            return None

    def _save_store(self):
        if self.config.data_file and isinstance(self.store, MemoryStore):
            self.store.save(self.config.data_file)

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes."""
        app = FastAPI(
            title="SuperMockio",
            description="Mock HTTP APIs generated from OpenAPI documents",
            version="1.0.0"
        )

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            start_time = time.time()
            response = await call_next(request)
            elapsed_ms = (time.time() - start_time) * 1000
            self.logger.info(
                f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)"
            )
            return response

        @app.exception_handler(SuperMockioError)
        async def handle_error(request: Request, exc: SuperMockioError):
            status_code = exc.status_code or 500
            if status_code >= 500:
                self.logger.error(f"Unhandled error for {request.method} {request.url.path}: {exc}")
            return JSONResponse(
                status_code=status_code,
                content={
                    'status': status_code,
                    'message': exc.message,
                    'timestamp': datetime.now(timezone.utc).isoformat(),
                    'path': request.url.path
                }
            )

        # Service management API
        @app.post("/api/services", status_code=201)
        async def upload_service(request: Request, override: int = 0):
            """Upload an OpenAPI document and generate its mock responses."""
            principal = get_principal(request)
            openapi = parse_openapi_document(await request.body())
            info = openapi['info']
            name = str(info['title'])
            version = str(info['version'])

            collaborators = []
            existing = self.store.find_service_for_user(principal.user_id, name, version)
            if existing is not None:
                if override == 0:
                    raise ServiceConflict("Service already exists")
                if not existing.is_owner(principal.user_id):
                    raise PermissionDenied("Only the owner can override a service")
                collaborators = list(existing.collaborators)
                self.store.delete_service(existing.id)
                self.logger.info(f"Overriding service {name} {version} of {principal.user_id}")

            service = self.store.add_service(Service(
                name=name,
                version=version,
                description=str(info.get('description') or ''),
                openapi=openapi,
                owner=principal.user_id,
                collaborators=collaborators
            ))

            records = await self.ingestor.ingest(service)
            self.metrics.services_ingested += 1
            self.metrics.records_generated += len(records)
            self._save_store()

            return JSONResponse(
                status_code=201,
                content={
                    'message': 'Service added successfully',
                    'service': {'name': service.name, 'version': service.version}
                }
            )

        @app.get("/api/services")
        async def list_services(request: Request):
            """List services owned by or shared with the caller."""
            principal = get_principal(request)
            services = self.store.find_services_for_user(principal.user_id)
            return JSONResponse(content=jsonable_encoder([service.summary() for service in services]))

        @app.get("/api/services/spec/{name}/{version}")
        async def get_service_spec(request: Request, name: str, version: str):
            """Return the stored OpenAPI document of a service."""
            service = self._readable_service(request, name, version)
            return JSONResponse(content=jsonable_encoder(service.openapi))

        @app.get("/api/services/{name}/{version}")
        async def get_service(request: Request, name: str, version: str):
            """Return a service with its generated responses."""
            service = self._readable_service(request, name, version)
            content = service.summary()
            content['responses'] = [record.to_dict() for record in self.store.find_responses(service.id)]
            return JSONResponse(content=jsonable_encoder(content))

        @app.delete("/api/services/{name}/{version}")
        async def delete_service(request: Request, name: str, version: str):
            """Delete a service and its responses (owner only)."""
            service = self._owned_service(request, name, version, "Only the owner can delete a service")

            self.store.delete_service(service.id)
            self._save_store()
            return JSONResponse(content={'message': 'Service deleted successfully'})

        # Collaborators
        @app.get("/api/services/{name}/{version}/collaborators")
        async def list_collaborators(request: Request, name: str, version: str):
            """List the collaborators of a service (owner or collaborator)."""
            service = self._readable_service(request, name, version)
            return JSONResponse(content=[{'user_id': user_id} for user_id in service.collaborators])

        @app.post("/api/services/{name}/{version}/collaborators", status_code=201)
        async def add_collaborator(request: Request, name: str, version: str):
            """Give another user read access (owner only)."""
            service = self._owned_service(request, name, version, "Only the owner can add collaborators")
            user_id = await self._collaborator_from_body(request)

            self.store.add_collaborator(service.id, user_id)
            self._save_store()
            self.logger.info(f"Added collaborator {user_id} to {service.name} {service.version}")
            return JSONResponse(status_code=201, content={'message': 'Collaborator added successfully'})

        @app.delete("/api/services/{name}/{version}/collaborators")
        async def remove_collaborator(request: Request, name: str, version: str):
            """Revoke a collaborator's access (owner only)."""
            service = self._owned_service(request, name, version, "Only the owner can remove collaborators")
            user_id = await self._collaborator_from_body(request)

            self.store.remove_collaborator(service.id, user_id)
            self._save_store()
            self.logger.info(f"Removed collaborator {user_id} from {service.name} {service.version}")
            return JSONResponse(content={'message': 'Collaborator removed successfully'})

        # Admin API routes
        if self.config.admin_enabled:
            @app.get(f"{self.config.admin_prefix}/metrics")
            async def get_metrics(request: Request):
                """Get server metrics."""
                self._require_admin(request)
                return JSONResponse(content=self.metrics.to_dict())

            @app.get(f"{self.config.admin_prefix}/config")
            async def get_config(request: Request):
                """Get current configuration."""
                self._require_admin(request)
                settings = MockerSettings.from_env()
                return JSONResponse(content={
                    'settings': settings.to_dict(),
                    'ai_service_configured': self.ai_service is not None,
                    'data_file': self.config.data_file,
                    'total_services': len(getattr(self.store, 'services', {})),
                    'total_responses': len(getattr(self.store, 'responses', []))
                })

            @app.post(f"{self.config.admin_prefix}/reset")
            async def reset_metrics(request: Request):
                """Reset metrics."""
                self._require_admin(request)
                self.metrics = MockMetrics()
                return JSONResponse(content={'status': 'reset'})

        # Mock endpoints
        @app.api_route("/mocks/{owner}/{name}/{version}", methods=MOCK_METHODS)
        @app.api_route("/mocks/{owner}/{name}/{version}/{path:path}", methods=MOCK_METHODS)
        async def mock_request(request: Request, owner: str, name: str, version: str, path: str = ''):
            """Serve the stored response for a request."""
            return self._handle_mock(request, owner, name, version, path)

        return app

    def _readable_service(self, request: Request, name: str, version: str) -> Service:
        principal = get_principal(request)
        service = self.store.find_service_for_user(principal.user_id, name, version)
        if service is None:
            raise ServiceNotFound("The service cannot be found")
        return service

    def _owned_service(self, request: Request, name: str, version: str, denied_message: str) -> Service:
        principal = get_principal(request)
        service = self._readable_service(request, name, version)
        if not service.is_owner(principal.user_id):
            raise PermissionDenied(denied_message)
        return service

    @staticmethod
    async def _collaborator_from_body(request: Request) -> str:
        """User id named by a `{"user_id": ...}` JSON body."""
        try:
            body = await request.json()
        except ValueError:
            raise InvalidRequest("Request body must be JSON")

        user_id = body.get('user_id') if isinstance(body, dict) else None
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidRequest("Request body must name a 'user_id'")
        return user_id.strip()

    def _require_admin(self, request: Request):
        """Enforce `MockConfig.admin_role` when one is configured."""
        role = self.config.admin_role
        if role is None:
            return
        principal = get_principal(request)
        if not principal.has_role(role):
            raise PermissionDenied(f"User does not have required roles: {role}")

    def _handle_mock(self, request: Request, owner: str, name: str, version: str, path: str) -> Response:
        """
        Dispatch a mock request.

        Args:
            request: FastAPI Request object
            owner: Owner of the service
            name: Service name
            version: Service version
            path: Request path below the service prefix

        Returns:
            Response with the stored status code and JSON content
        """
        self.metrics.total_requests += 1

        try:
            result = self.dispatcher.find_response(
                owner, name, version, '/' + path, request.method,
                status_code=request.headers.get(STATUS_HEADER),
                example_name=request.headers.get(EXAMPLE_HEADER)
            )
        except DispatchNotFound:
            self.metrics.unmatched_requests += 1
            raise

        if result.substituted:
            self.metrics.substituted_requests += 1
        else:
            self.metrics.matched_requests += 1

        record = result.record
        self.logger.debug(
            f"{request.method} /{path} on {owner}/{name}/{version}: "
            f"{record.status_code} ({result.reason})"
        )
        if _empty_body_status(record.status_code):
            return Response(status_code=record.status_code)

        return JSONResponse(content=jsonable_encoder(record.content), status_code=record.status_code)

    def start(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        access_log: bool = False
    ):
        """
        Start the server.

        Args:
            host: Host to bind to (overrides config)
            port: Port to bind to (overrides config)
            access_log: Enable uvicorn access logging
        """
        actual_host = host or self.config.host
        actual_port = port or self.config.port

        print("SuperMockio starting...")
        print(f"   Host: {actual_host}:{actual_port}")
        print(f"   Services loaded: {len(getattr(self.store, 'services', {}))}")
        print(f"   AI generation: {'enabled' if self.settings.ai_generation_enabled else 'disabled'}")
        print(f"   Strict mode: {'on' if self.settings.strict_mode else 'off'}")

        if self.config.data_file:
            print(f"   Data file: {self.config.data_file}")

        if self.config.admin_enabled:
            print(f"   Admin API: http://{actual_host}:{actual_port}{self.config.admin_prefix}/metrics")

        print()

        uvicorn.run(
            self.app,
            host=actual_host,
            port=actual_port,
            log_level=self.config.log_level,
            access_log=access_log
        )

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def create_mock_server(
    host: str = "127.0.0.1",
    port: int = 8080,
    data_file: Optional[str] = None,
    log_level: str = "info",
    admin_enabled: bool = True
) -> MockServer:
    """
    Convenience function to create and configure a server.

    Args:
        host: Host to bind to
        port: Port to bind to
        data_file: JSON snapshot to load on start and save after changes
        log_level: Logging level (debug, info, warning, error)
        admin_enabled: Expose the admin API

    Returns:
        Configured MockServer instance
    """
    config = MockConfig(
        host=host,
        port=port,
        data_file=data_file,
        log_level=log_level,
        admin_enabled=admin_enabled
    )

    return MockServer(config=config)
