from typing import Optional


class VerifierException(Exception):
    """Base exception for verifier errors."""


class DeclarationError(VerifierException):
    """Raised when declaration input cannot be modeled at all.

    This occurs when:
    - A type expression is syntactically malformed.
    - A fragment names no type.

    Attributes:
        text: The offending input text.
        reason: Optional reason for the failure.
    """

    def __init__(self, text: str, reason: Optional[str] = None) -> None:
        self.text = text
        self.reason = reason
        message = f"Invalid declaration input: {text!r}"
        if reason:
            message += f". Reason: {reason}"
        super().__init__(message)

