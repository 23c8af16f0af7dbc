"""RBAC-style policy checks.

A policy decides which subjects may let which plugins modify containers in
which namespaces. Rules are selected by namespace, then scanned in order for
one that names both the plugin and the subject.

Note that default_deny governs two cases alike: no rule selecting the
namespace, and rules selecting the namespace without any of them granting
access. With default_deny false a plugin is therefore allowed even when a
rule for its namespace exists and does not list the subject.
"""

from typing import List, Optional, Sequence

from nrivalidator import validator_logging
from nrivalidator.common import pattern
from nrivalidator.common.exception import PolicyDenied
from nrivalidator.validation.provider import ValidationContext
from nrivalidator.validation.rules import PolicyRule, PolicySubject, ValidationPolicy

logger = validator_logging.init_logging("policy")


class PolicyValidator:
    """Evaluates a ValidationPolicy for one plugin at a time."""

    def __init__(self, policy: ValidationPolicy) -> None:
        self._policy = policy

    @property
    def policy(self) -> ValidationPolicy:
        return self._policy

    def check_access(self, context: ValidationContext) -> None:
        """Decide whether context.plugin_name may operate in context.pod_namespace.

        Args:
            context: Subject, pod identity and plugin to decide for

        Raises:
            PolicyDenied: If access is not granted and default_deny is set
        """
        matching = self.find_matching_rules(context.pod_namespace)

        if not matching:
            if self._policy.default_deny:
                raise self._denied(context, "access denied: no matching rules found and defaultDeny is true")
            logger.debug("No rule matches namespace %s, allowing by default", context.pod_namespace)
            return

        for index, rule in enumerate(matching):
            if self.plugin_allowed(context.plugin_name, rule.plugins) and self.subject_allowed(
                context.subject, rule.subjects
            ):
                logger.debug(
                    "Plugin %s granted for %s in namespace %s by matching rule %d",
                    context.plugin_name,
                    context.subject,
                    context.pod_namespace,
                    index,
                )
                return

        if self._policy.default_deny:
            raise self._denied(context, "access denied: no rule allows this subject/plugin combination")

        logger.debug(
            "No rule grants plugin %s for %s in namespace %s, allowing by default",
            context.plugin_name,
            context.subject,
            context.pod_namespace,
        )

    def find_matching_rules(self, namespace: str) -> List[PolicyRule]:
        """Return the rules with a namespace pattern matching namespace, in declared order."""
        return [rule for rule in self._policy.rules if pattern.match_any(rule.namespaces, namespace)]

    @staticmethod
    def plugin_allowed(plugin_name: str, allowed_plugins: Sequence[str]) -> bool:
        return pattern.match_any(allowed_plugins, plugin_name)

    @staticmethod
    def subject_allowed(subject: Optional[PolicySubject], allowed_subjects: Sequence[PolicySubject]) -> bool:
        # Without subject information nothing can be granted
        if subject is None:
            return False
        return any(subject.kind == s.kind and subject.name == s.name for s in allowed_subjects)

    @staticmethod
    def _denied(context: ValidationContext, reason: str) -> PolicyDenied:
        return PolicyDenied(
            f"policy validation failed for plugin {context.plugin_name}: {reason}",
            plugin=context.plugin_name,
            namespace=context.pod_namespace,
            subject=context.subject,
        )
