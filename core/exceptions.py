"""Error taxonomy for the bastion tunnel tool."""

from typing import List, Optional, Tuple

CLEANUP_COMMAND = "basti cleanup"


class BastiError(Exception):
    """Base exception for basti."""

    pass


class AccessDeniedError(BastiError):
    """An AWS permission check failed."""

    def __init__(self, operation: str, message: str = "Access denied by IAM"):
        self.operation = operation
        super().__init__(message)


class ResourceNotFoundError(BastiError):
    """The referenced AWS resource does not exist."""

    def __init__(self, resource: str, message: Optional[str] = None):
        self.resource = resource
        super().__init__(message or f"{resource} not found")


class ProvisioningTimeoutError(BastiError):
    """The bastion never became ready within the configured bound."""

    def __init__(self, instance_id: str, timeout_seconds: float):
        self.instance_id = instance_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"bastion instance {instance_id} did not register with SSM "
            f"within {timeout_seconds:g} seconds"
        )


class SessionResponseInvalidError(BastiError):
    """The StartSession response is missing fields or malformed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"invalid SSM session response: {reason}")


class PartialCleanupFailureError(BastiError):
    """One or more managed resources could not be deleted."""

    def __init__(self, failures: List[Tuple[str, str]]):
        """Initialize the PartialCleanupFailureError.

        Args:
            failures: (resource id, reason) pairs for every undeleted resource
        """
        self.failures = failures
        details = "; ".join(f"{resource_id}: {reason}" for resource_id, reason in failures)
        super().__init__(
            f"{len(failures)} resource(s) could not be deleted: {details}"
        )


class OperationError(BastiError):
    """A user-facing failure scoped to a named operation.

    The message states what failed, why, and for dirty operations the
    command that removes any resources left behind.
    """

    def __init__(self, operation_name: str, message: str, dirty: bool = False):
        self.operation_name = operation_name
        self.cause_message = message
        self.dirty = dirty
        super().__init__(format_operation_error(operation_name, message, dirty))

    @classmethod
    def from_error(
        cls, operation_name: str, error: BaseException, dirty: bool = False
    ) -> "OperationError":
        """Wrap an underlying error, keeping it as ``__cause__``."""
        operation_error = cls(operation_name, get_error_detail(error), dirty)
        operation_error.__cause__ = error
        return operation_error


def get_error_detail(error: BaseException) -> str:
    """Human-readable cause for an arbitrary error."""
    if isinstance(error, AccessDeniedError):
        return f"Access denied by IAM while {error.operation}"
    message = str(error).strip()
    return message or type(error).__name__


def format_operation_error(operation_name: str, message: str, dirty: bool = False) -> str:
    dirty_message = (
        ". This operation might have already created AWS resources. "
        f"Please, run `{CLEANUP_COMMAND}` before retrying"
        if dirty
        else ""
    )
    return f"Error {operation_name}. {_capitalize(message)}{dirty_message}"


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]
