"""Validation manager.

The validation manager is the single entry point used by the runtime glue.
It runs the configured validators in order, stopping at the first denial:

1. the default validator, if enabled
2. the restrictions, for every plugin that contributed to the adjustment
3. the policy, for every plugin that contributed to the adjustment
"""

import logging
from typing import Any, List, Mapping, Optional

from nrivalidator import validator_logging
from nrivalidator.common.exception import (
    DefaultValidationDenied,
    SubjectExtractionError,
    ValidationDenied,
)
from nrivalidator.subject import extract_subject
from nrivalidator.types import ValidateContainerAdjustmentRequest, plugin_names
from nrivalidator.validation.policy import PolicyValidator
from nrivalidator.validation.provider import AdjustmentValidator, RequestContext, ValidationContext
from nrivalidator.validation.providers.builtin import BuiltinValidator
from nrivalidator.validation.restrictions import RestrictionsValidator
from nrivalidator.validation.rules import PolicySubject, ValidationConfig, ValidationPolicy

logger = validator_logging.init_logging("manager")


class ValidationManager:
    """Runs all configured validators against container adjustments.

    The manager is responsible for:
    - Building the restrictions and policy validators from the configuration
    - Loading the default validator when enabled (fail-safe deny on failure)
    - Denying the whole adjustment on the first failure of any stage
    - Logging all decisions for audit trail

    The configuration is only read, so a single manager can serve concurrent
    requests.
    """

    def __init__(self, config: ValidationConfig, default_validator: Optional[AdjustmentValidator] = None) -> None:
        """Initialize the validation manager.

        Args:
            config: A configuration already checked with config.validate_config
            default_validator: Validator to use in the default validator slot instead
                               of the built-in one. Only used if the configuration
                               enables the default validator.
        """
        self._default_validator: Optional[AdjustmentValidator] = None

        if config.enable_default_validator:
            if default_validator is not None:
                self._default_validator = default_validator
            else:
                self._default_validator = self._load_default_validator(config.default_validator_config or {})

            if not self._default_validator.health_check():
                logger.warning("Default validator %s is unhealthy", self._default_validator.get_name())

        self._restrictions: Optional[RestrictionsValidator] = None
        if config.restrictions is not None:
            self._restrictions = RestrictionsValidator(config.restrictions)

        # Without a policy section every plugin is allowed
        self._policy = PolicyValidator(config.policy if config.policy is not None else ValidationPolicy())

        logger.info(
            "Validation manager ready: default validator %s, restrictions %s, %d policy rules (defaultDeny=%s)",
            self.get_default_validator_name(),
            "enabled" if self._restrictions else "disabled",
            len(self._policy.policy.rules),
            self._policy.policy.default_deny,
        )

    def _load_default_validator(self, validator_config: Mapping[str, Any]) -> AdjustmentValidator:
        """Load the built-in default validator.

        If it cannot be created, a validator denying every adjustment is used
        instead.
        """
        try:
            validator: AdjustmentValidator = BuiltinValidator(validator_config)
            logger.info("Default validator %s loaded successfully", validator.get_name())
            return validator
        except Exception as e:
            logger.error("Failed to load default validator: %s", e)
            logger.error("SECURITY: Falling back to deny-all validator for safety")

        class DenyAllValidator(AdjustmentValidator):
            """Fail-safe validator that denies all adjustments."""

            def __init__(self, config: Mapping[str, Any]) -> None:
                pass

            def validate_container_adjustment(self, request: ValidateContainerAdjustmentRequest) -> None:
                raise DefaultValidationDenied(
                    "default validator failed to load - denying all adjustments for security"
                )

            def get_name(self) -> str:
                return "deny_all"

            def health_check(self) -> bool:
                return False

        return DenyAllValidator({})

    def get_default_validator_name(self) -> str:
        """Get the name of the default validator, "none" when disabled."""
        return self._default_validator.get_name() if self._default_validator else "none"

    def validate(
        self, request: ValidateContainerAdjustmentRequest, context: Optional[RequestContext] = None
    ) -> None:
        """Validate a container adjustment, taking the subject from the pod annotations.

        A subject that cannot be extracted is treated as unknown, which the
        policy never grants.

        Raises:
            ValidationDenied: If the adjustment must be rejected
        """
        subject: Optional[PolicySubject] = None
        try:
            subject = extract_subject(request.get("pod"))
        except SubjectExtractionError as e:
            logger.warning("Unable to determine subject, continuing without one: %s", e)

        self.validate_container_adjustment(request, subject, context)

    def validate_container_adjustment(
        self,
        request: ValidateContainerAdjustmentRequest,
        subject: Optional[PolicySubject],
        context: Optional[RequestContext] = None,
    ) -> None:
        """Validate a container adjustment on behalf of subject.

        Args:
            request: The validation request as received from the runtime
            subject: Who asked for the adjustment, None if unknown
            context: Request identifier and cancellation state

        Raises:
            ValidationDenied: If the adjustment must be rejected. The
                              exception carries the plugin, namespace and
                              subject involved, where known.
        """
        pod = request.get("pod")
        container = request.get("container") or {}
        if context is None:
            context = RequestContext(request_id=container.get("id") or "")

        token = validator_logging.request_id_var.set(context.request_id)
        try:
            plugins = plugin_names(request)
            try:
                if pod is None:
                    raise ValidationDenied("pod information is required for policy validation", subject=subject)
                self._run_default_validator(request)
                self._run_restrictions(request, plugins, context)
                self._run_policy(pod.get("namespace") or "", pod.get("name") or "", plugins, subject, context)
            except ValidationDenied as e:
                if e.subject is None:
                    e.subject = subject
                self._log_decision(False, request, plugins, subject, str(e))
                raise

            self._log_decision(True, request, plugins, subject, "all validators passed")
        finally:
            validator_logging.request_id_var.reset(token)

    def _run_default_validator(self, request: ValidateContainerAdjustmentRequest) -> None:
        if self._default_validator is None:
            return

        try:
            self._default_validator.validate_container_adjustment(request)
        except ValidationDenied as e:
            raise DefaultValidationDenied(f"default validation failed: {e}") from e
        except Exception as e:
            logger.error(
                "Default validator %s encountered error: %s (denying by default)",
                self._default_validator.get_name(),
                e,
                exc_info=True,
            )
            raise DefaultValidationDenied(f"default validator error: {e}") from e

    def _run_restrictions(
        self, request: ValidateContainerAdjustmentRequest, plugins: List[str], context: RequestContext
    ) -> None:
        if self._restrictions is None:
            return

        for plugin_name in plugins:
            context.check()
            self._restrictions.check_adjustment(plugin_name, request)

    def _run_policy(
        self,
        namespace: str,
        pod_name: str,
        plugins: List[str],
        subject: Optional[PolicySubject],
        context: RequestContext,
    ) -> None:
        for plugin_name in plugins:
            context.check()
            self._policy.check_access(
                ValidationContext(
                    subject=subject,
                    pod_namespace=namespace,
                    pod_name=pod_name,
                    plugin_name=plugin_name,
                )
            )

    @staticmethod
    def _log_decision(
        allowed: bool,
        request: ValidateContainerAdjustmentRequest,
        plugins: List[str],
        subject: Optional[PolicySubject],
        reason: str,
    ) -> None:
        pod = request.get("pod") or {}
        container = request.get("container") or {}

        log_func = validator_logging.set_log_func(logging.INFO if allowed else logging.WARNING, logger)
        log_func(
            "Validation %s: container=%s/%s/%s, plugins=%s, subject=%s, reason=%s",
            "GRANTED" if allowed else "DENIED",
            pod.get("namespace") or "",
            pod.get("name") or "",
            container.get("name") or "",
            ",".join(plugins) or "-",
            subject if subject is not None else "-",
            reason,
        )
