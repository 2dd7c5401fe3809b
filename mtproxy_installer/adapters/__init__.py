"""Adapters — bindings to the container runtime and the init system.

Public re-exports for convenient access.
"""

from mtproxy_installer.adapters.base import ContainerInfo, ContainerRuntime, ImageInfo, InitSystem
from mtproxy_installer.adapters.containers.docker import DockerRuntime
from mtproxy_installer.adapters.initsys.systemd import SystemdInitSystem
from mtproxy_installer.adapters.mock import FakeContainerRuntime, FakeInitSystem

__all__ = [
    "ContainerInfo",
    "ContainerRuntime",
    "DockerRuntime",
    "FakeContainerRuntime",
    "FakeInitSystem",
    "ImageInfo",
    "InitSystem",
    "SystemdInitSystem",
]
