from typing import Awaitable, Callable, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from pydantic import BaseModel, Field
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from miraveja_verifier.application import DependencyVerifier, LatestSnapshotRunner
from miraveja_verifier.domain import Diagnostic, TypeFragment


class VerifyRequest(BaseModel):
    """Body of a verification request."""

    fragments: List[TypeFragment] = Field(default_factory=list, description="Raw declaration fragments.")


class VerifyResponse(BaseModel):
    """Body of a verification response."""

    diagnostics: List[Diagnostic] = Field(default_factory=list)
    cycles: List[str] = Field(default_factory=list, description="Cycle paths, one per distinct cycle.")
    has_errors: bool = False


def create_verifier_dependency(verifier: DependencyVerifier) -> Callable[[], DependencyVerifier]:
    """Create a FastAPI Depends() callable returning a shared verifier.

    Args:
        verifier: The verifier to hand out.

    Returns:
        A callable that FastAPI can use with Depends().

    Example:
        >>> get_verifier = create_verifier_dependency(DependencyVerifier())
        >>>
        >>> @app.post("/check")
        >>> def check(body: VerifyRequest, verifier: DependencyVerifier = Depends(get_verifier)):
        ...     return verifier.verify(body.fragments).diagnostics
    """

    def dependency() -> DependencyVerifier:
        """Return the shared verifier."""
        return verifier

    return dependency


def get_request_runner(request: Request) -> LatestSnapshotRunner:
    """Resolve the runner installed by ``VerificationRunnerMiddleware``."""
    if not hasattr(request.state, "verification_runner"):
        raise RuntimeError(
            "Request does not have a verification runner. Did you forget to add VerificationRunnerMiddleware?"
        )
    return request.state.verification_runner


class VerificationRunnerMiddleware(BaseHTTPMiddleware):
    """Middleware exposing one shared latest-snapshot runner on every request.

    The runner is accessible via ``request.state.verification_runner``. Since
    all requests share it, a verification superseded by a newer request is
    answered with 409 Conflict instead of a stale result.

    Attributes:
        runner: The runner shared by all requests.
    """

    def __init__(self, app: FastAPI, runner: Optional[LatestSnapshotRunner] = None):
        super().__init__(app)
        self.runner = runner or LatestSnapshotRunner()

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request.state.verification_runner = self.runner
        return await call_next(request)


def create_verification_router(verifier: Optional[DependencyVerifier] = None, prefix: str = "") -> APIRouter:
    """Create a router exposing ``POST {prefix}/verify``.

    When ``VerificationRunnerMiddleware`` is installed, requests go through its
    latest-snapshot runner. Otherwise every request is verified independently
    with ``verifier``.

    Args:
        verifier: Verifier used when no runner middleware is installed.
        prefix: Router path prefix.

    Returns:
        The router.

    Example:
        >>> app = FastAPI()
        >>> app.include_router(create_verification_router())
    """
    router = APIRouter(prefix=prefix)
    get_verifier = create_verifier_dependency(verifier or DependencyVerifier())

    @router.post("/verify", response_model=VerifyResponse)
    def verify(
        body: VerifyRequest,
        request: Request,
        shared_verifier: DependencyVerifier = Depends(get_verifier),
    ) -> VerifyResponse:
        if hasattr(request.state, "verification_runner"):
            result = get_request_runner(request).submit(body.fragments)
            if result is None:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Verification superseded by a newer snapshot",
                )
        else:
            result = shared_verifier.verify(body.fragments)

        return VerifyResponse(
            diagnostics=list(result.diagnostics),
            cycles=[cycle.path for cycle in result.cycles],
            has_errors=result.has_errors,
        )

    return router
