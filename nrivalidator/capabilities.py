"""Mutation capabilities and their extraction from a container adjustment."""

import enum
from typing import FrozenSet, Iterable, List, Optional, Set

from nrivalidator.types import ContainerAdjustment


class MutationCapability(enum.Enum):
    """Categories of container mutation a restriction can target."""

    # Container adjustment capabilities
    ANNOTATIONS = "annotations"
    MOUNTS = "mounts"
    ARGS = "args"
    ENV = "env"
    HOOKS = "hooks"
    RLIMITS = "rlimits"
    DEVICES = "devices"
    RESOURCES = "resources"
    SECCOMP = "seccomp"
    NAMESPACES = "namespaces"

    # Resource-specific capabilities
    MEMORY = "memory"
    CPU = "cpu"
    BLOCKIO = "blockio"
    RDT = "rdt"
    UNIFIED = "unified"

    @classmethod
    def names(cls) -> List[str]:
        return [c.value for c in cls]


_ORDER = {capability: index for index, capability in enumerate(MutationCapability)}


def sort_capabilities(capabilities: Iterable[MutationCapability]) -> List[MutationCapability]:
    """Order capabilities as they are declared in MutationCapability."""
    return sorted(capabilities, key=_ORDER.__getitem__)


def extract_capabilities(adjust: Optional[ContainerAdjustment]) -> FrozenSet[MutationCapability]:
    """Determine which mutation capabilities an adjustment exercises.

    Collections count when non-empty, nested messages count when present. A
    resources block reports RESOURCES plus each of its own populated
    sub-fields, so a memory-only change yields both RESOURCES and MEMORY.
    """
    if not adjust:
        return frozenset()

    found: Set[MutationCapability] = set()

    if adjust.get("annotations"):
        found.add(MutationCapability.ANNOTATIONS)
    if adjust.get("mounts"):
        found.add(MutationCapability.MOUNTS)
    if adjust.get("args"):
        found.add(MutationCapability.ARGS)
    if adjust.get("env"):
        found.add(MutationCapability.ENV)
    if adjust.get("hooks") is not None:
        found.add(MutationCapability.HOOKS)
    if adjust.get("rlimits"):
        found.add(MutationCapability.RLIMITS)

    linux = adjust.get("linux")
    if linux is not None:
        if linux.get("devices"):
            found.add(MutationCapability.DEVICES)

        resources = linux.get("resources")
        if resources is not None:
            found.add(MutationCapability.RESOURCES)

            if resources.get("memory") is not None:
                found.add(MutationCapability.MEMORY)
            if resources.get("cpu") is not None:
                found.add(MutationCapability.CPU)
            if resources.get("blockio_class"):
                found.add(MutationCapability.BLOCKIO)
            if resources.get("rdt_class"):
                found.add(MutationCapability.RDT)
            if resources.get("unified"):
                found.add(MutationCapability.UNIFIED)

        if linux.get("seccomp_policy") is not None:
            found.add(MutationCapability.SECCOMP)
        if linux.get("namespaces"):
            found.add(MutationCapability.NAMESPACES)

    return frozenset(found)
