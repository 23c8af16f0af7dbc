"""Types for the container adjustment validation request.

The runtime delivers the request as structured data, so it is kept as plain
dictionaries and described here with TypedDicts. Field names follow the NRI
protobuf definitions.
"""

from typing import Any, Dict, List, Optional, TypedDict


class KeyValue(TypedDict):
    key: str
    value: str


class Mount(TypedDict, total=False):
    destination: str
    type: str
    source: str
    options: List[str]


class Hook(TypedDict, total=False):
    path: str
    args: List[str]
    env: List[str]
    timeout: int


class Hooks(TypedDict, total=False):
    prestart: List[Hook]
    create_runtime: List[Hook]
    create_container: List[Hook]
    start_container: List[Hook]
    poststart: List[Hook]
    poststop: List[Hook]


class POSIXRlimit(TypedDict):
    type: str
    hard: int
    soft: int


class LinuxDevice(TypedDict, total=False):
    path: str
    type: str
    major: int
    minor: int
    file_mode: int
    uid: int
    gid: int


class LinuxNamespace(TypedDict):
    type: str
    path: str


class LinuxMemory(TypedDict, total=False):
    limit: int
    reservation: int
    swap: int
    kernel: int
    kernel_tcp: int
    swappiness: int
    disable_oom_killer: bool
    use_hierarchy: bool


class LinuxCPU(TypedDict, total=False):
    shares: int
    quota: int
    period: int
    realtime_runtime: int
    realtime_period: int
    cpus: str
    mems: str


class HugepageLimit(TypedDict):
    page_size: str
    limit: int


class LinuxResources(TypedDict, total=False):
    memory: Optional[LinuxMemory]
    cpu: Optional[LinuxCPU]
    hugepage_limits: List[HugepageLimit]
    blockio_class: Optional[str]
    rdt_class: Optional[str]
    unified: Dict[str, str]
    devices: List[Dict[str, Any]]


class LinuxContainerAdjustment(TypedDict, total=False):
    devices: List[LinuxDevice]
    resources: Optional[LinuxResources]
    cgroups_path: str
    oom_score_adj: Optional[int]
    namespaces: List[LinuxNamespace]
    seccomp_policy: Optional[Dict[str, Any]]


class ContainerAdjustment(TypedDict, total=False):
    annotations: Dict[str, str]
    mounts: List[Mount]
    env: List[KeyValue]
    hooks: Optional[Hooks]
    linux: Optional[LinuxContainerAdjustment]
    rlimits: List[POSIXRlimit]
    args: List[str]


class LinuxPodSandbox(TypedDict, total=False):
    cgroup_parent: str
    cgroups_path: str


class PodSandbox(TypedDict, total=False):
    id: str
    name: str
    uid: str
    namespace: str
    labels: Dict[str, str]
    annotations: Dict[str, str]
    runtime_handler: str
    linux: Optional[LinuxPodSandbox]


class LinuxContainer(TypedDict, total=False):
    cgroups_path: str
    oom_score_adj: Optional[int]


class Container(TypedDict, total=False):
    id: str
    pod_sandbox_id: str
    name: str
    labels: Dict[str, str]
    annotations: Dict[str, str]
    args: List[str]
    env: List[str]
    linux: Optional[LinuxContainer]


class PluginInstance(TypedDict, total=False):
    name: str
    index: str


class ValidateContainerAdjustmentRequest(TypedDict, total=False):
    pod: Optional[PodSandbox]
    container: Optional[Container]
    adjust: Optional[ContainerAdjustment]
    update: List[Dict[str, Any]]
    owners: Dict[str, Any]
    plugins: List[PluginInstance]


def plugin_names(request: ValidateContainerAdjustmentRequest) -> List[str]:
    """Return the names of the plugins that contributed to the adjustment.

    Names are returned in request order with duplicates dropped.
    """
    names: List[str] = []
    for plugin in request.get("plugins") or []:
        name = plugin.get("name") or ""
        if name and name not in names:
            names.append(name)
    return names
