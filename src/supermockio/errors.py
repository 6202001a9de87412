"""
SuperMockio Errors

Exception types shared by the example engine, the ingestor and the HTTP layer.

Generation-time errors (references, unsupported schemas, AI failures) are
absorbed close to where they happen and turned into fallback examples. Only
the HTTP-facing errors carry a status code and reach the caller.
"""

from typing import Optional


class SuperMockioError(Exception):
    """Base class for all SuperMockio errors."""

    status_code: Optional[int] = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ReferenceResolutionError(SuperMockioError):
    """A `$ref` pointer names a segment that does not exist in the document."""

    def __init__(self, ref: str, segment: Optional[str] = None):
        detail = f"Failed to resolve reference: {ref}"
        if segment is not None:
            detail += f" (missing segment '{segment}')"
        super().__init__(detail)
        self.ref = ref
        self.segment = segment


class SchemaUnsupportedError(SuperMockioError):
    """The schema declares a type the example generator cannot handle."""

    def __init__(self, schema_type):
        super().__init__(f"Unsupported schema type: {schema_type}")
        self.schema_type = schema_type


class AIGenerationError(SuperMockioError):
    """AI generation is disabled, misconfigured, failed or returned garbage."""


class DispatchNotFound(SuperMockioError):
    """No stored example matches an inbound mock request."""

    status_code = 404


class ServiceNotFound(SuperMockioError):
    status_code = 404


class ServiceConflict(SuperMockioError):
    status_code = 409


class PermissionDenied(SuperMockioError):
    status_code = 403


class NotAuthenticated(SuperMockioError):
    status_code = 401


class InvalidDocument(SuperMockioError):
    """The uploaded document is not a usable OpenAPI document."""

    status_code = 400


class CollaboratorConflict(ServiceConflict):
    """The user already has access to the service."""


class CollaboratorNotFound(SuperMockioError):
    status_code = 404


class InvalidRequest(SuperMockioError):
    status_code = 400
