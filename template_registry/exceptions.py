"""
Registry Exceptions Module

Typed errors raised by the face template registries. Every error carries a
stable ``error_code`` and a ``context`` dictionary so callers can branch on the
error kind (or log it structurally) without matching on message text.

Hierarchy:
    FaceTemplateRegistryError
        RegistryClosedError
        SimilarFaceAlreadyRegisteredError
        IdentifierNotRegisteredError
        IncompatibleFaceTemplatesError
        FaceDoesNotMatchExistingError
"""

from typing import Any, Dict, Optional


class FaceTemplateRegistryError(Exception):
    """
    Base class for all registry errors.

    Args:
        message: Human-readable error message.
        context: Additional details about the error (identifier, score, ...).
        error_code: Stable code for programmatic handling.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        self.error_code = error_code
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]

        if self.error_code:
            parts.append(f"[Error Code: {self.error_code}]")

        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the error to a dictionary for structured logging.

        Returns:
            Dictionary with error type, message, code and context.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class RegistryClosedError(FaceTemplateRegistryError, RuntimeError):
    """Raised when an operation is attempted on a closed registry."""

    def __init__(self, registry_name: str = "FaceTemplateRegistry") -> None:
        super().__init__(
            f"{registry_name} is closed",
            context={"registry": registry_name},
            error_code="REGISTRY_001",
        )


class SimilarFaceAlreadyRegisteredError(FaceTemplateRegistryError):
    """
    Raised when a face being registered is too similar to a face that is
    already registered under a different identifier.
    """

    def __init__(self, registered_identifier: str) -> None:
        self.registered_identifier = registered_identifier
        super().__init__(
            f"Similar face already registered as {registered_identifier}",
            context={"registered_identifier": registered_identifier},
            error_code="REGISTRY_002",
        )


class IdentifierNotRegisteredError(FaceTemplateRegistryError):
    """Raised when no face templates are registered for an identifier."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(
            f"Identifier not registered: {identifier}",
            context={"identifier": identifier},
            error_code="REGISTRY_003",
        )


class IncompatibleFaceTemplatesError(FaceTemplateRegistryError):
    """
    Raised when no single registry holds every identifier known to a
    multi-registry, so no registry can serve as ground truth for identification.
    """

    def __init__(self) -> None:
        super().__init__(
            "Incompatible face templates",
            error_code="REGISTRY_004",
        )


class FaceDoesNotMatchExistingError(FaceTemplateRegistryError):
    """
    Raised when a face registered under an existing identifier does not match
    any of the faces already registered for that identifier.
    """

    def __init__(self, max_score: float) -> None:
        self.max_score = max_score
        super().__init__(
            f"Face does not match existing faces (max score {max_score:.3f})",
            context={"max_score": max_score},
            error_code="REGISTRY_005",
        )
