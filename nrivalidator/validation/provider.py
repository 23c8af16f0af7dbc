"""Validator interface and per-request records.

This module defines the abstract interface of the default validator slot in
the validation pipeline, together with the transient records built for each
validated request.
"""

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from nrivalidator.common.exception import ValidationCancelled
from nrivalidator.types import ValidateContainerAdjustmentRequest
from nrivalidator.validation.rules import PolicySubject


@dataclass
class ValidationContext:
    """Context for a policy decision about one plugin.

    Attributes:
        subject: Who is requesting the change, None if it could not be determined
        pod_namespace: Namespace of the pod being modified
        pod_name: Name of the pod being modified
        plugin_name: Name of the plugin whose changes are being checked
    """

    subject: Optional[PolicySubject] = None
    pod_namespace: str = ""
    pod_name: str = ""
    plugin_name: str = ""


@dataclass
class RequestContext:
    """Caller-side state of a validation request.

    Attributes:
        request_id: Identifier attached to log records (usually the container ID)
        deadline: time.monotonic() value after which the request is abandoned
        cancel_event: Set by the caller to abandon the request
    """

    request_id: str = ""
    deadline: Optional[float] = None
    cancel_event: Optional[threading.Event] = None

    def cancelled(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self) -> None:
        """Raise ValidationCancelled if the request was cancelled or timed out."""
        if self.cancelled():
            raise ValidationCancelled(f"validation of request {self.request_id or '<unknown>'} cancelled")


class AdjustmentValidator(ABC):
    """Abstract base class for validators run ahead of the restrictions and policy checks.

    Validators must be stateless and thread-safe, as the runtime may ask for
    several validations concurrently.

    Example implementation:

        class NoHooksValidator(AdjustmentValidator):
            def __init__(self, config: Mapping[str, Any]) -> None:
                self._config = config

            def validate_container_adjustment(self, request: ValidateContainerAdjustmentRequest) -> None:
                if (request.get("adjust") or {}).get("hooks") is not None:
                    raise DefaultValidationDenied("OCI hooks are not allowed")

            def get_name(self) -> str:
                return "no_hooks"

            def health_check(self) -> bool:
                return True
    """

    @abstractmethod
    def __init__(self, config: Mapping[str, Any]) -> None:
        """Initialize the validator.

        Args:
            config: Validator specific options, taken verbatim from the
                    defaultValidatorConfig section of the configuration
        """

    @abstractmethod
    def validate_container_adjustment(self, request: ValidateContainerAdjustmentRequest) -> None:
        """Validate a container adjustment.

        Args:
            request: The validation request as received from the runtime

        Raises:
            ValidationDenied: If the adjustment must be rejected. Any other
                              exception is treated as a denial by the caller
        """

    @abstractmethod
    def get_name(self) -> str:
        """Get the validator name for logging and debugging."""

    @abstractmethod
    def health_check(self) -> bool:
        """Check if the validator is ready to make decisions."""
