"""Technical restrictions on what plugins may change.

Restrictions look at the kind of change a plugin makes (namespaces, hooks,
resources, ...) and at the pod it makes it to, regardless of who asked for
it. Every restriction is checked on its own and the first failing one denies
the adjustment; restrictions do not accumulate into a combined allowlist.
"""

from typing import Iterable, Optional

from nrivalidator import validator_logging
from nrivalidator.capabilities import MutationCapability, extract_capabilities, sort_capabilities
from nrivalidator.common import pattern
from nrivalidator.common.exception import RestrictionDenied
from nrivalidator.types import PodSandbox, ValidateContainerAdjustmentRequest, plugin_names
from nrivalidator.validation.rules import (
    MutationRestriction,
    PluginRestriction,
    PodRestriction,
    PodSelector,
    RestrictionAction,
    RestrictionsConfig,
)

logger = validator_logging.init_logging("restrictions")


def pod_matches(selector: PodSelector, pod: PodSandbox) -> bool:
    """Check if a pod satisfies every non-empty field of a selector."""
    if selector.namespaces and not pattern.match_any(selector.namespaces, pod.get("namespace") or ""):
        return False

    if selector.labels:
        pod_labels = pod.get("labels") or {}
        for key, value in selector.labels.items():
            if key not in pod_labels or pod_labels[key] != value:
                return False

    if selector.names and not pattern.match_any(selector.names, pod.get("name") or ""):
        return False

    return True


class RestrictionsValidator:
    """Validates container adjustments against a RestrictionsConfig."""

    def __init__(self, config: RestrictionsConfig) -> None:
        self._config = config

    def validate_container_adjustment(self, request: ValidateContainerAdjustmentRequest) -> None:
        """Check the adjustment for every plugin that contributed to it.

        Raises:
            RestrictionDenied: On the first failing restriction
        """
        for plugin_name in plugin_names(request):
            self.check_adjustment(plugin_name, request)

    def check_adjustment(self, plugin_name: str, request: ValidateContainerAdjustmentRequest) -> None:
        """Check the restrictions that apply to one plugin.

        Mutation restrictions are checked first (global ones, then those of
        every matching plugin restriction), followed by the pod restrictions
        in the same order.

        Raises:
            RestrictionDenied: On the first failing restriction
        """
        pod = request.get("pod")
        if pod is None:
            raise RestrictionDenied("pod information is required for restrictions validation", plugin=plugin_name)

        capabilities = sort_capabilities(extract_capabilities(request.get("adjust")))
        logger.debug(
            "Plugin %s adjustment uses capabilities: %s",
            plugin_name,
            ", ".join(c.value for c in capabilities) or "none",
        )

        matching = self.find_plugin_restrictions(plugin_name)

        try:
            for restriction in self._config.global_restrictions:
                self._check_mutation_restriction(restriction, capabilities)
            for plugin_restriction in matching:
                for restriction in plugin_restriction.mutation_restrictions:
                    self._check_mutation_restriction(restriction, capabilities)
        except RestrictionDenied as e:
            raise RestrictionDenied(
                f"plugin {plugin_name} restricted: {e}",
                capability=e.capability,
                restriction=e.restriction,
                plugin=plugin_name,
                namespace=pod.get("namespace") or "",
            ) from e

        try:
            for pod_restriction in self._config.global_pod_restrictions:
                self._check_pod_restriction(pod_restriction, pod)
            for plugin_restriction in matching:
                for pod_restriction in plugin_restriction.pod_restrictions:
                    self._check_pod_restriction(pod_restriction, pod)
        except RestrictionDenied as e:
            raise RestrictionDenied(
                f"plugin {plugin_name} denied pod access: {e}",
                restriction=e.restriction,
                plugin=plugin_name,
                namespace=pod.get("namespace") or "",
            ) from e

    def find_plugin_restrictions(self, plugin_name: str) -> Iterable[PluginRestriction]:
        """Return the plugin restrictions whose pattern matches plugin_name, in declared order."""
        return [r for r in self._config.plugin_restrictions if pattern.match(r.plugin_pattern, plugin_name)]

    @staticmethod
    def _check_mutation_restriction(
        restriction: MutationRestriction, capabilities: Iterable[MutationCapability]
    ) -> None:
        failed: Optional[str] = None

        for capability in capabilities:
            if restriction.action == RestrictionAction.ALLOW and capability not in restriction.capabilities:
                failed = f"mutation capability {capability.value} not in allowlist"
            elif restriction.action == RestrictionAction.DENY and capability in restriction.capabilities:
                failed = f"mutation capability {capability.value} is denied"

            if failed:
                raise RestrictionDenied(failed, capability=capability, restriction=restriction)

    @staticmethod
    def _check_pod_restriction(restriction: PodRestriction, pod: PodSandbox) -> None:
        matches = pod_matches(restriction.selector, pod)

        if restriction.action == RestrictionAction.ALLOW and not matches:
            raise RestrictionDenied("pod not in allowlist", restriction=restriction)
        if restriction.action == RestrictionAction.DENY and matches:
            raise RestrictionDenied("pod is in denylist", restriction=restriction)
