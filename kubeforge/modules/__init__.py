"""
Node provisioning modules.
"""
from .container import ContainerdInstaller
from .kubernetes import KubernetesInstaller
from .network import NetworkPluginInstaller
from .runner import CommandRunner
from .system import SystemPreparer

__all__ = [
    'CommandRunner',
    'ContainerdInstaller',
    'KubernetesInstaller',
    'NetworkPluginInstaller',
    'SystemPreparer',
]
