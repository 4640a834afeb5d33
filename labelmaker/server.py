"""
HTTP server for hook installation and callback intake using FastAPI.

Routes:
    POST /hooks/{token}                 GitHub callback intake
    POST /repos/{owner}/{name}/install  install a hook for the calling user
    GET  /repos/{owner}/{name}          registration details
    GET  /repos                         the calling user's repositories
    GET  /health                        store connectivity
"""

from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
import uvicorn

from labelmaker import __version__
from labelmaker.core.errors import (
    LabelmakerError,
    RemoteAPIError,
    ReplayedDelivery,
    StorageError,
    TokenCollisionError,
    WebhookRejected,
)
from labelmaker.core.logging import get_logger, set_request_id
from labelmaker.core.settings import Settings, get_settings
from labelmaker.github import GitHubClient
from labelmaker.hooks.dispatch import ALL_EVENTS, EventDispatcher, log_event
from labelmaker.hooks.intake import WebhookIntake
from labelmaker.hooks.registration import RegistrationService
from labelmaker.hooks.store import HookStore

logger = get_logger(__name__)


class LabelmakerServer:
    """Owns the store handle, the dispatcher and the FastAPI application."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[HookStore] = None,
        dispatcher: Optional[EventDispatcher] = None,
        github_factory: Optional[Callable[[str], GitHubClient]] = None,
    ):
        """
        Initialize server.

        Args:
            settings: Configuration; the global settings when omitted
            store: Registry handle; built from settings.redis when omitted
            dispatcher: Downstream event dispatcher; one logging every event when omitted
            github_factory: Builds a GitHub client from a user access token
        """
        self.settings = settings or get_settings()
        self._owns_store = store is None
        self.store = store or HookStore.from_settings(self.settings.redis)

        if dispatcher is None:
            dispatcher = EventDispatcher(
                queue_size=self.settings.hooks.queue_size,
                workers=self.settings.hooks.workers,
            )
            dispatcher.subscribe(ALL_EVENTS, log_event)
        self.dispatcher = dispatcher

        self.registration = RegistrationService(
            self.store, self.settings, github_factory=github_factory
        )
        self.github_factory = self.registration.github_factory
        self.intake = WebhookIntake(self.store, self.dispatcher.submit, self.settings.hooks)
        self.app = self._create_app()

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        """Manage server lifecycle."""
        logger.info("Starting labelmaker server")
        await self.dispatcher.start()

        yield

        logger.info("Shutting down labelmaker server")
        await self.dispatcher.stop()
        if self._owns_store:
            await self.store.close()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        app = FastAPI(
            title="Labelmaker",
            description="Per-repository GitHub web hooks with verified callbacks",
            version=__version__,
            lifespan=self.lifespan
        )
        app.state.server = self

        @app.middleware("http")
        async def add_request_id(request: Request, call_next):
            """Tag logs with the caller's request id or GitHub's delivery id."""
            request_id = set_request_id(
                request.headers.get("X-Request-ID")
                or request.headers.get("X-GitHub-Delivery")
            )
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        app.add_exception_handler(LabelmakerError, self.handle_error)

        app.add_api_route(
            "/hooks/{token}",
            self.receive_hook,
            methods=["POST"],
            status_code=202,
            summary="Receive a GitHub callback"
        )

        app.add_api_route(
            "/repos/{owner}/{name}/install",
            self.install_repo,
            methods=["POST"],
            status_code=201,
            summary="Install a hook on a repository"
        )

        app.add_api_route(
            "/repos/{owner}/{name}",
            self.get_repo,
            methods=["GET"],
            summary="Get a repository's registration"
        )

        app.add_api_route(
            "/repos",
            self.list_repos,
            methods=["GET"],
            summary="List the caller's repositories"
        )

        app.add_api_route(
            "/health",
            self.health_check,
            methods=["GET"],
            summary="Health check endpoint"
        )

        return app

    async def handle_error(self, request: Request, exc: LabelmakerError) -> JSONResponse:
        """Map registry errors to HTTP responses."""
        if isinstance(exc, ReplayedDelivery):
            return JSONResponse(status_code=409, content={"detail": "Delivery already received"})
        if isinstance(exc, WebhookRejected):
            # Unknown paths and bad signatures look the same from outside
            return JSONResponse(status_code=404, content={"detail": "Not Found"})
        if isinstance(exc, RemoteAPIError):
            if exc.status_code == 401:
                return JSONResponse(status_code=401, content={"detail": "GitHub rejected the access token"})
            return JSONResponse(status_code=502, content={"detail": str(exc)})
        if isinstance(exc, (StorageError, TokenCollisionError)):
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
            return JSONResponse(status_code=503, content={"detail": "Registry unavailable"})

        logger.error(f"Unhandled registry error: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Internal error"})

    async def receive_hook(
        self,
        token: str,
        request: Request,
        x_github_event: Optional[str] = Header(None),
        x_hub_signature: Optional[str] = Header(None),
        x_github_delivery: Optional[str] = Header(None),
    ) -> Dict[str, Any]:
        """
        Handle an inbound GitHub callback.

        The body is read as raw bytes and verified before anything parses it.
        """
        if not x_github_event:
            raise HTTPException(status_code=400, detail="Missing X-GitHub-Event header")

        body = await request.body()
        await self.intake.handle(
            token,
            body,
            x_hub_signature,
            x_github_event,
            delivery_id=x_github_delivery,
        )
        return {"ok": True}

    async def install_repo(
        self,
        owner: str,
        name: str,
        authorization: Optional[str] = Header(None),
    ) -> Dict[str, Any]:
        """Install a hook on owner/name using the caller's GitHub token."""
        access_token = _access_token(authorization)
        record = await self.registration.install(owner, name, access_token)
        return record.public_dict()

    async def get_repo(
        self,
        owner: str,
        name: str,
        authorization: Optional[str] = Header(None),
    ) -> Dict[str, Any]:
        """
        Get the registration of owner/name.

        Only a caller who administers the repository on GitHub may see it.
        Everyone else gets the same 404 as for an unregistered repository.
        """
        access_token = _access_token(authorization)
        not_found = HTTPException(status_code=404, detail="Repository is not registered")

        async with self.github_factory(access_token) as github:
            try:
                repo = await github.get_repository(owner, name)
            except RemoteAPIError as e:
                if e.status_code in (403, 404):
                    raise not_found
                raise

        if not repo.get("permissions", {}).get("admin"):
            logger.warning(f"Refused registration lookup of {owner}/{name} to a non-admin")
            raise not_found

        record = await self.store.get_repo_info(owner, name)
        if record is None:
            raise not_found
        return record.public_dict()

    async def list_repos(self, authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
        """List the caller's repositories and whether each has a hook installed."""
        access_token = _access_token(authorization)
        async with self.github_factory(access_token) as github:
            repos = await github.list_repositories()

        results = []
        for repo in repos:
            record = await self.store.get_repo_info(repo.owner, repo.name)
            results.append({
                "id": repo.id,
                "owner": repo.owner,
                "name": repo.name,
                "installed": record is not None,
            })
        return {"repos": results}

    async def health_check(self) -> JSONResponse:
        """Health check endpoint."""
        try:
            await self.store.ping()
        except StorageError as e:
            return JSONResponse(status_code=503, content={"status": "unhealthy", "store": str(e)})
        return JSONResponse(content={"status": "healthy", "version": __version__})

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """Run the server with uvicorn."""
        uvicorn.run(
            self.app,
            host=host or self.settings.server.host,
            port=port or self.settings.server.port,
            log_config=None,
        )


def _access_token(authorization: Optional[str]) -> str:
    """Extract a GitHub token from "token <t>" or "Bearer <t>"."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    scheme, _, value = authorization.partition(" ")
    if scheme.lower() in ("token", "bearer") and value.strip():
        return value.strip()
    raise HTTPException(status_code=401, detail="Unsupported authorization scheme")


def create_app(settings: Optional[Settings] = None, **kwargs) -> FastAPI:
    """Create the FastAPI application."""
    return LabelmakerServer(settings, **kwargs).app
