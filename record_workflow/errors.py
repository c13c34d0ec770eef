"""Error taxonomy for record workflow."""


class WorkflowError(Exception):
    """Base class for record workflow errors."""

    notice = "Something went wrong. Please try again."


class ValidationError(WorkflowError):
    """A required field is missing or a value is outside its allowed set."""

    notice = "Please check the highlighted fields and try again."


class BackendUnavailable(WorkflowError):
    """The document store could not be reached or failed transiently."""

    notice = "The service is temporarily unavailable. Please try again."


class PermissionDenied(WorkflowError):
    """The actor is not allowed to perform the operation."""

    notice = "You do not have permission to do that."


class RecordNotFound(WorkflowError):
    """The referenced record does not exist."""

    notice = "That record no longer exists."
