import os
from pathlib import Path
from typing import Optional

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

from ..exceptions import KubeforgeError


def resolve_kubeconfig(path: Optional[str] = None, admin_kubeconfig: Optional[str] = None) -> str:
    """
    Pick the kubeconfig to use: an explicit path, then $KUBECONFIG,
    then ~/.kube/config, then the kubeadm admin config.
    """
    if path:
        resolved = Path(os.path.expanduser(path)).resolve()
        if not resolved.exists():
            raise KubeforgeError(f"kubeconfig not found: {resolved}")
        return str(resolved)

    if os.environ.get("KUBECONFIG"):
        return os.path.expanduser(os.environ["KUBECONFIG"].split(os.pathsep)[0])

    user_config = Path("~/.kube/config").expanduser()
    if user_config.exists() or not admin_kubeconfig:
        return str(user_config)
    return admin_kubeconfig


def load_kubeconfig(path: Optional[str] = None, admin_kubeconfig: Optional[str] = None) -> str:
    """
    Load the kubeconfig into the kubernetes client.
    Returns the actual path used to load the kubeconfig.
    """
    resolved = resolve_kubeconfig(path, admin_kubeconfig)
    try:
        config.load_kube_config(config_file=resolved)
    except (ConfigException, OSError) as e:
        raise KubeforgeError(f"failed to load kubeconfig {resolved}: {e}") from e
    return resolved


def core_v1_api(path: Optional[str] = None, admin_kubeconfig: Optional[str] = None) -> client.CoreV1Api:
    load_kubeconfig(path, admin_kubeconfig)
    return client.CoreV1Api()
