"""
KubeForge - bootstrap Kubernetes nodes with kubeadm.

Prepares the host, installs containerd and the Kubernetes packages,
initializes or joins a cluster and installs a pod network plugin.
"""

APP_NAME = "KubeForge"
__version__ = "1.0.0"
