"""Configuration records for the validation engines.

The records are built once by nrivalidator.config and never modified
afterwards, hence frozen dataclasses holding tuples.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

from nrivalidator.capabilities import MutationCapability


class RestrictionAction(enum.Enum):
    """Whether a restriction list is an allowlist or a denylist."""

    ALLOW = "allow"
    DENY = "deny"


class SubjectKind(enum.Enum):
    USER = "User"
    GROUP = "Group"
    SERVICE_ACCOUNT = "ServiceAccount"


@dataclass(frozen=True)
class PodSelector:
    """Pod selection criteria.

    Attributes:
        namespaces: Namespace patterns, any of which may match
        labels: Labels the pod must carry with exactly these values
        names: Pod name patterns, any of which may match

    All non-empty fields must be satisfied; an empty field matches any pod.
    """

    namespaces: Tuple[str, ...] = ()
    labels: Mapping[str, str] = field(default_factory=dict)
    names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MutationRestriction:
    action: RestrictionAction
    capabilities: Tuple[MutationCapability, ...]


@dataclass(frozen=True)
class PodRestriction:
    action: RestrictionAction
    selector: PodSelector


@dataclass(frozen=True)
class PluginRestriction:
    """Restrictions applied to the plugins whose name matches plugin_pattern."""

    plugin_pattern: str
    mutation_restrictions: Tuple[MutationRestriction, ...] = ()
    pod_restrictions: Tuple[PodRestriction, ...] = ()


@dataclass(frozen=True)
class RestrictionsConfig:
    # Parsed and validated, but not consulted when checking adjustments.
    default_action: Optional[RestrictionAction] = None
    global_restrictions: Tuple[MutationRestriction, ...] = ()
    plugin_restrictions: Tuple[PluginRestriction, ...] = ()
    global_pod_restrictions: Tuple[PodRestriction, ...] = ()


@dataclass(frozen=True)
class PolicySubject:
    kind: SubjectKind
    name: str

    def __str__(self) -> str:
        return f"{self.kind.value}/{self.name}"


@dataclass(frozen=True)
class PolicyRule:
    """Grants the listed subjects use of the listed plugins in the listed namespaces."""

    namespaces: Tuple[str, ...]
    plugins: Tuple[str, ...]
    subjects: Tuple[PolicySubject, ...]


@dataclass(frozen=True)
class ValidationPolicy:
    default_deny: bool = False
    rules: Tuple[PolicyRule, ...] = ()


@dataclass(frozen=True)
class ValidationConfig:
    """Complete validation configuration.

    Attributes:
        policy: RBAC-style access control, None when not configured
        restrictions: Technical mutation controls, None when not configured
        enable_default_validator: Run the default validator before the others
        default_validator_config: Options handed to the default validator as is
    """

    policy: Optional[ValidationPolicy] = None
    restrictions: Optional[RestrictionsConfig] = None
    enable_default_validator: bool = False
    default_validator_config: Optional[Mapping[str, Any]] = None
