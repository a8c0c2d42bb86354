from fastapi import Request
from fastapi.responses import JSONResponse


class SparkError(Exception):
    """Base exception for errors surfaced through the API."""

    def __init__(
        self,
        code: str,
        message: str,
        status: int = 500,
        details: dict | None = None,
    ):
        self.code = code
        self.message = message
        self.status = status
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        result = {
            "error": {
                "code": self.code,
                "message": self.message,
                "status": self.status,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result


class AuthenticationError(SparkError):
    def __init__(self, message: str = "Invalid or missing token.", details: dict | None = None):
        super().__init__(code="authentication_required", message=message, status=401, details=details)


class FeatureDisabledError(SparkError):
    def __init__(self, message: str = "This feature is disabled.", details: dict | None = None):
        super().__init__(code="not_found", message=message, status=404, details=details)


class ControlError(SparkError):
    """Container action failure. Surfaced to the caller as-is, never retried."""


class ContainerNotFoundError(ControlError):
    def __init__(self, message: str = "Container not found.", details: dict | None = None):
        super().__init__(code="not_found", message=message, status=404, details=details)


class RuntimeUnavailableError(ControlError):
    def __init__(self, message: str = "Container runtime is unavailable.", details: dict | None = None):
        super().__init__(
            code="runtime_unavailable",
            message=message,
            status=503,
            details=details or {"suggestion": "Check that the Docker daemon is installed and running."},
        )


class ActionRejectedError(ControlError):
    def __init__(self, message: str = "The container runtime rejected the action.", details: dict | None = None):
        super().__init__(code="action_rejected", message=message, status=409, details=details)


class CollectionError(Exception):
    """A metric family could not be collected. Absorbed by the provider, never sent as an HTTP error."""

    kind = "collection_error"

    def __init__(self, family: str, reason: str):
        self.family = family
        self.reason = reason
        super().__init__(f"{family}: {reason}")


class SourceUnavailable(CollectionError):
    """The external source is missing, unreachable, or did not answer in time."""

    kind = "source_unavailable"


class ParseFailure(CollectionError):
    """The source answered but its output could not be parsed."""

    kind = "parse_failure"


async def spark_error_handler(request: Request, exc: SparkError) -> JSONResponse:
    """Global exception handler for SparkError and subclasses."""
    return JSONResponse(status_code=exc.status, content=exc.to_dict())
