"""
FastAPI integration module.

Exposes declaration verification over HTTP.
"""

from .integration import (
    VerificationRunnerMiddleware,
    VerifyRequest,
    VerifyResponse,
    create_verification_router,
    create_verifier_dependency,
    get_request_runner,
)

__all__ = [
    "create_verification_router",
    "create_verifier_dependency",
    "get_request_runner",
    "VerificationRunnerMiddleware",
    "VerifyRequest",
    "VerifyResponse",
]
