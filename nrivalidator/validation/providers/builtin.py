"""Built-in default validator.

This validator fills the "default validator" slot of the pipeline, enabled
with enableDefaultValidator. It applies a few blanket checks configured
through defaultValidatorConfig:

- rejectOCIHookAdjustment: reject adjustments that inject OCI hooks
- rejectNamespaceAdjustment: reject adjustments that change Linux namespaces
- rejectSeccompAdjustment: reject adjustments that change the seccomp policy
- requiredPlugins: plugins that must have taken part in every adjustment
- tolerateMissingAnnotation: pod annotation which, set to "true", waives
  requiredPlugins for that pod

All options are off by default.
"""

from typing import Any, List, Mapping

from nrivalidator import validator_logging
from nrivalidator.common.exception import DefaultValidationDenied
from nrivalidator.types import ValidateContainerAdjustmentRequest, plugin_names
from nrivalidator.validation.provider import AdjustmentValidator

logger = validator_logging.init_logging("builtin")


class BuiltinValidator(AdjustmentValidator):
    """Default validator applying blanket restrictions to every adjustment."""

    KNOWN_OPTIONS = frozenset(
        {
            "rejectOCIHookAdjustment",
            "rejectNamespaceAdjustment",
            "rejectSeccompAdjustment",
            "requiredPlugins",
            "tolerateMissingAnnotation",
        }
    )

    BOOL_OPTIONS = ("rejectOCIHookAdjustment", "rejectNamespaceAdjustment", "rejectSeccompAdjustment")

    def __init__(self, config: Mapping[str, Any]) -> None:
        """Initialize BuiltinValidator.

        Args:
            config: The defaultValidatorConfig section, may be empty

        Raises:
            ValueError: If an option has the wrong type
        """
        for option in sorted(set(config) - self.KNOWN_OPTIONS):
            logger.warning("Ignoring unknown default validator option %s", option)

        self.check_options(config)

        self._reject_hooks: bool = config.get("rejectOCIHookAdjustment", False)
        self._reject_namespaces: bool = config.get("rejectNamespaceAdjustment", False)
        self._reject_seccomp: bool = config.get("rejectSeccompAdjustment", False)
        self._required_plugins: List[str] = list(config.get("requiredPlugins") or [])
        self._tolerate_annotation: str = config.get("tolerateMissingAnnotation") or ""

        logger.info("Initialized BuiltinValidator")

    @classmethod
    def check_options(cls, config: Mapping[str, Any]) -> None:
        """Check the option types of a defaultValidatorConfig section.

        Used at configuration load time, so that a bad option stops the
        service from starting.

        Raises:
            ValueError: If an option has the wrong type
        """
        for option in cls.BOOL_OPTIONS:
            if not isinstance(config.get(option, False), bool):
                raise ValueError(f"{option} must be a boolean")

        required = config.get("requiredPlugins") or []
        if not isinstance(required, list) or not all(isinstance(p, str) for p in required):
            raise ValueError("requiredPlugins must be a list of plugin names")

        if not isinstance(config.get("tolerateMissingAnnotation") or "", str):
            raise ValueError("tolerateMissingAnnotation must be an annotation name")

    def validate_container_adjustment(self, request: ValidateContainerAdjustmentRequest) -> None:
        adjust = request.get("adjust") or {}
        linux = adjust.get("linux") or {}

        if self._reject_hooks and adjust.get("hooks") is not None:
            raise DefaultValidationDenied("OCI hook injection is not allowed")

        if self._reject_namespaces and linux.get("namespaces"):
            raise DefaultValidationDenied("Linux namespace adjustment is not allowed")

        if self._reject_seccomp and linux.get("seccomp_policy") is not None:
            raise DefaultValidationDenied("seccomp policy adjustment is not allowed")

        if self._required_plugins:
            self._check_required_plugins(request)

    def _check_required_plugins(self, request: ValidateContainerAdjustmentRequest) -> None:
        present = plugin_names(request)
        missing = [p for p in self._required_plugins if p not in present]
        if not missing:
            return

        pod = request.get("pod") or {}
        if self._tolerate_annotation:
            annotations = pod.get("annotations") or {}
            if annotations.get(self._tolerate_annotation) == "true":
                logger.debug(
                    "Tolerating missing required plugins %s for pod %s/%s",
                    missing,
                    pod.get("namespace") or "",
                    pod.get("name") or "",
                )
                return

        raise DefaultValidationDenied(f"required plugins {', '.join(missing)} not present")

    def get_name(self) -> str:
        return "builtin"

    def health_check(self) -> bool:
        """The built-in validator has no external dependencies and is always healthy."""
        return True
