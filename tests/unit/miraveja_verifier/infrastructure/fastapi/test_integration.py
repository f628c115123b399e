"""Unit tests for FastAPI integration."""

from unittest.mock import MagicMock, Mock

import pytest

pytest.importorskip("fastapi")

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.responses import Response

from miraveja_verifier.application import DependencyVerifier, LatestSnapshotRunner
from miraveja_verifier.infrastructure.fastapi_integration.integration import (
    VerificationRunnerMiddleware,
    create_verification_router,
    create_verifier_dependency,
    get_request_runner,
)

CAPTIVE_FRAGMENTS = [
    {"name": "X", "lifetime": "singleton", "field_dependencies": [{"target": "IY"}]},
    {"name": "Y", "lifetime": "scoped", "implements": ["IY"]},
]


class TestCreateVerifierDependency:
    """Test cases for create_verifier_dependency function."""

    def test_dependency_returns_shared_verifier(self):
        """Test that the dependency always hands out the same verifier."""
        verifier = DependencyVerifier()

        dependency = create_verifier_dependency(verifier)

        assert callable(dependency)
        assert dependency() is verifier
        assert dependency() is dependency()


class TestGetRequestRunner:
    """Test cases for get_request_runner function."""

    def test_returns_installed_runner(self):
        """Test that the runner is read from request state."""
        runner = LatestSnapshotRunner()
        request = Mock(spec=Request)
        request.state = Mock()
        request.state.verification_runner = runner

        assert get_request_runner(request) is runner

    def test_raises_without_middleware(self):
        """Test the error raised when the middleware is missing."""
        request = Mock(spec=Request)
        request.state = Mock(spec=[])

        with pytest.raises(RuntimeError) as exc_info:
            get_request_runner(request)

        assert "VerificationRunnerMiddleware" in str(exc_info.value)


class TestVerificationRunnerMiddleware:
    """Test cases for VerificationRunnerMiddleware class."""

    def test_middleware_initialization(self):
        """Test that the middleware creates a runner when none is given."""
        middleware = VerificationRunnerMiddleware(FastAPI())

        assert isinstance(middleware.runner, LatestSnapshotRunner)

    @pytest.mark.asyncio
    async def test_middleware_installs_runner(self):
        """Test that dispatch exposes the shared runner on the request."""
        runner = LatestSnapshotRunner()
        middleware = VerificationRunnerMiddleware(FastAPI(), runner)
        request = Mock(spec=Request)
        request.state = Mock()

        async def mock_call_next(req):
            assert req.state.verification_runner is runner
            return Response("OK", status_code=200)

        response = await middleware.dispatch(request, mock_call_next)

        assert response.status_code == 200


class TestVerificationRouter:
    """Test cases for the verification router."""

    def test_verify_endpoint_reports_diagnostics(self):
        """Test a verification request without the runner middleware."""
        app = FastAPI()
        app.include_router(create_verification_router())
        client = TestClient(app)

        response = client.post("/verify", json={"fragments": CAPTIVE_FRAGMENTS})

        assert response.status_code == 200
        body = response.json()
        assert [diagnostic["kind"] for diagnostic in body["diagnostics"]] == ["IOC012"]
        assert body["diagnostics"][0]["severity"] == "error"
        assert body["has_errors"] is True
        assert body["cycles"] == []

    def test_verify_endpoint_reports_cycles(self):
        """Test that cycle paths are returned."""
        app = FastAPI()
        app.include_router(create_verification_router(prefix="/di"))
        client = TestClient(app)
        fragments = [{"name": "A", "lifetime": "scoped", "field_dependencies": [{"target": "A"}]}]

        response = client.post("/di/verify", json={"fragments": fragments})

        assert response.json()["cycles"] == ["A -> A"]

    def test_malformed_type_expression_is_reported(self):
        """Test that a bad type expression comes back as a diagnostic, not a rejection."""
        app = FastAPI()
        app.include_router(create_verification_router())
        client = TestClient(app)
        fragments = [{"name": "A", "lifetime": "scoped", "implements": ["IRepo<"]}]

        response = client.post("/verify", json={"fragments": fragments})

        assert response.status_code == 200
        diagnostics = response.json()["diagnostics"]
        assert [diagnostic["kind"] for diagnostic in diagnostics] == ["IOC995"]
        assert diagnostics[0]["related"] == "IRepo<"

    def test_fragment_without_name_is_unprocessable(self):
        """Test that request bodies failing validation give 422."""
        app = FastAPI()
        app.include_router(create_verification_router())
        client = TestClient(app)

        response = client.post("/verify", json={"fragments": [{"lifetime": "scoped"}]})

        assert response.status_code == 422

    def test_requests_go_through_installed_runner(self):
        """Test that the middleware runner is used when present."""
        runner = LatestSnapshotRunner()
        app = FastAPI()
        app.add_middleware(VerificationRunnerMiddleware, runner=runner)
        app.include_router(create_verification_router())
        client = TestClient(app)

        response = client.post("/verify", json={"fragments": CAPTIVE_FRAGMENTS})

        assert response.status_code == 200
        assert runner.generation == 1
        assert runner.latest is not None

    def test_superseded_request_is_a_conflict(self):
        """Test that a discarded pass is answered with 409."""
        runner = MagicMock(spec=LatestSnapshotRunner)
        runner.submit.return_value = None
        app = FastAPI()
        app.add_middleware(VerificationRunnerMiddleware, runner=runner)
        app.include_router(create_verification_router())
        client = TestClient(app)

        response = client.post("/verify", json={"fragments": CAPTIVE_FRAGMENTS})

        assert response.status_code == 409
