"""Resolution of container and pod cgroup v2 directories.

The runtime reports cgroup paths relative to the cgroup hierarchy, either as
a plain cgroupfs path or in systemd slice notation. These helpers turn them
into absolute directories.
"""

import os
from typing import Optional

from nrivalidator.types import Container, PodSandbox

DEFAULT_CGROUP_V2_ROOT = "/sys/fs/cgroup"

CGROUP_V2_CANDIDATES = [DEFAULT_CGROUP_V2_ROOT, "/cgroup2"]

PROC_MOUNTS = "/proc/mounts"


def get_container_cgroups_v2_abs_path(container: Optional[Container]) -> str:
    """Return the absolute cgroup v2 directory of a container, "" if it has no cgroups path."""
    if not container:
        return ""
    linux = container.get("linux") or {}
    cgroups_path = linux.get("cgroups_path", "")
    if not cgroups_path:
        return ""
    return get_cgroups_v2_path(cgroups_path)


def get_pod_cgroups_v2_abs_path(pod: Optional[PodSandbox]) -> str:
    """Return the absolute cgroup v2 directory of a pod, "" if it has no cgroups path."""
    if not pod:
        return ""
    linux = pod.get("linux") or {}
    cgroups_path = linux.get("cgroups_path", "")
    if not cgroups_path:
        return ""
    return get_cgroups_v2_path(cgroups_path)


def get_cgroups_v2_path(cgroups_path: str) -> str:
    if os.path.isabs(cgroups_path):
        return cgroups_path

    return resolve_cgroup_path(get_cgroup_v2_root() or DEFAULT_CGROUP_V2_ROOT, cgroups_path)


def get_cgroup_v2_root() -> str:
    """Find the cgroup v2 mount point.

    /proc/mounts is consulted first, then the usual mount points are probed.
    """
    mount_point = find_cgroup_v2_mount()
    if mount_point:
        return mount_point

    for path in CGROUP_V2_CANDIDATES:
        if is_cgroup_v2_mount(path):
            return path

    return DEFAULT_CGROUP_V2_ROOT


def find_cgroup_v2_mount(mounts_file: str = PROC_MOUNTS) -> str:
    """Return the mount point of the first cgroup2 filesystem in mounts_file, "" if none."""
    try:
        with open(mounts_file, encoding="utf-8") as f:
            for line in f:
                fields = line.split()
                if len(fields) >= 3 and fields[2] == "cgroup2":
                    return fields[1]
    except OSError:
        return ""
    return ""


def is_cgroup_v2_mount(path: str) -> bool:
    return os.path.exists(os.path.join(path, "cgroup.controllers"))


def is_systemd_path(path: str) -> bool:
    return ".slice" in path or ":" in path


def resolve_cgroup_path(cgroup_root: str, cgroups_path: str) -> str:
    if is_systemd_path(cgroups_path):
        return convert_systemd_path(cgroup_root, cgroups_path)

    # cgroupfs driver, the path is a plain directory below the root
    return os.path.join(cgroup_root, cgroups_path)


def convert_systemd_path(cgroup_root: str, systemd_path: str) -> str:
    """Convert systemd slice notation to a directory.

    "system.slice/containerd.service/kubepods-burstable-pod123.slice:cri-containerd:container456"
    becomes "<root>/system.slice/containerd.service/kubepods-burstable-pod123.slice/cri-containerd:container456".
    """
    slice_path, sep, final_component = systemd_path.partition(":")
    if sep:
        return os.path.join(cgroup_root, slice_path, final_component)

    return os.path.join(cgroup_root, systemd_path)
