from typing import Any, Optional


class NRIValidatorException(Exception):
    """Base class for all validator exceptions"""

    _msg_fmt = "An unknown exception occurred."

    def __init__(self, message: Optional[str] = None, **kwargs: Any):
        if not message:
            message = self._msg_fmt % kwargs

        super().__init__(message)


class ConfigLoadError(NRIValidatorException):
    """The configuration could not be read or parsed. Fatal at startup."""

    _msg_fmt = "Failed to load configuration from %(path)s."


class ConfigValidationError(NRIValidatorException):
    """The configuration parsed but violates a structural rule. Fatal at startup."""

    _msg_fmt = "Invalid configuration."


class SubjectExtractionError(NRIValidatorException):
    _msg_fmt = "Unable to extract subject from pod metadata."


class ValidationDenied(NRIValidatorException):
    """A container adjustment was denied.

    The attributes identify the request for audit logging. Any of them may be
    None when the denial happened before the value was known.
    """

    _msg_fmt = "Container adjustment denied."

    def __init__(
        self,
        message: Optional[str] = None,
        plugin: Optional[str] = None,
        namespace: Optional[str] = None,
        subject: Optional[Any] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.plugin = plugin
        self.namespace = namespace
        self.subject = subject


class RestrictionDenied(ValidationDenied):
    """A capability or pod selector restriction failed."""

    _msg_fmt = "Restriction check failed."

    def __init__(
        self,
        message: Optional[str] = None,
        capability: Optional[Any] = None,
        restriction: Optional[Any] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.capability = capability
        self.restriction = restriction


class PolicyDenied(ValidationDenied):
    _msg_fmt = "access denied"


class DefaultValidationDenied(ValidationDenied):
    _msg_fmt = "default validation failed"


class ValidationCancelled(ValidationDenied):
    _msg_fmt = "validation cancelled"
