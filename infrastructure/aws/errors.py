"""Translation of botocore errors into basti's error taxonomy."""

from botocore.exceptions import ClientError

from core.exceptions import AccessDeniedError, ResourceNotFoundError

ACCESS_DENIED_CODES = {
    "AccessDenied",
    "AccessDeniedException",
    "UnauthorizedOperation",
    "AuthorizationError",
}

NOT_FOUND_CODES = {
    "NoSuchEntity",
    "InvalidGroup.NotFound",
    "InvalidGroupId.Malformed",
    "InvalidInstanceID.NotFound",
    "InvalidInstanceID.Malformed",
    "DBInstanceNotFound",
    "DBInstanceNotFoundFault",
    "DBClusterNotFoundFault",
    "DBSubnetGroupNotFoundFault",
    "ParameterNotFound",
}


def get_error_code(error: Exception) -> str:
    """AWS error code of a ClientError, empty for anything else."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "")
    return ""


def is_access_denied(error: Exception) -> bool:
    return isinstance(error, AccessDeniedError) or get_error_code(error) in ACCESS_DENIED_CODES


def is_not_found(error: Exception) -> bool:
    code = get_error_code(error)
    return (
        isinstance(error, ResourceNotFoundError)
        or code in NOT_FOUND_CODES
        or code.endswith("NotFound")
        or code.endswith("NotFoundFault")
    )


def translate_error(operation: str, error: Exception, resource: str = "") -> Exception:
    """Map a ClientError to AccessDeniedError/ResourceNotFoundError when it is one.

    Other errors are returned unchanged.
    """
    if isinstance(error, (AccessDeniedError, ResourceNotFoundError)):
        return error

    if is_access_denied(error):
        translated = AccessDeniedError(operation)
    elif isinstance(error, ClientError) and is_not_found(error):
        message = error.response.get("Error", {}).get("Message")
        translated = ResourceNotFoundError(resource or operation, message)
    else:
        return error

    translated.__cause__ = error
    return translated
