# =============================================================================
# core/errors.py  -  Error taxonomy
# =============================================================================
#
#   ServiceError
#     ├── InvalidArgumentsError   bad tool input, raised before any I/O
#     ├── RecordNotFoundError     a lookup by Id returned zero rows
#     └── BackendError            a Salesforce call failed (one kind per operation)
#           ├── LoginError
#           ├── QueryError
#           ├── DescribeError
#           ├── MutationError
#           ├── UserInfoError
#           └── ListObjectsError
#
# Nothing in this package retries.  The tools layer either converts these
# into protocol-level ToolErrors or captures them into a {success: false}
# envelope.
# =============================================================================


class ServiceError(Exception):
    """Base class for every error raised by this project."""


class InvalidArgumentsError(ServiceError):
    def __init__(self, message: str, details: list[str] | None = None):
        self.details = details or []
        if self.details:
            message = f"{message}: {'; '.join(self.details)}"
        super().__init__(message)


class RecordNotFoundError(ServiceError):
    def __init__(self, object_name: str, record_id: str):
        self.object_name = object_name
        self.record_id = record_id
        super().__init__(f"{object_name} with ID {record_id} not found")


class BackendError(ServiceError):
    """A backend call failed.  Carries the operation label and the original message."""

    operation = "Salesforce operation"

    def __init__(self, message: str):
        self.original_message = message or "Unknown error"
        super().__init__(f"{self.operation} failed: {self.original_message}")


class LoginError(BackendError):
    operation = "Salesforce login"


class QueryError(BackendError):
    operation = "SOQL query"


class DescribeError(BackendError):
    operation = "Object describe"


class MutationError(BackendError):
    operation = "Record mutation"

    def __init__(self, message: str, action: str = "mutation"):
        self.operation = f"Record {action}"
        super().__init__(message)


class UserInfoError(BackendError):
    operation = "Get user info"


class ListObjectsError(BackendError):
    operation = "List objects"
