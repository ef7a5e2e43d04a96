"""Configuration management for kubeforge.

Settings are resolved with the following precedence:
1. Values from the first YAML file found in DEFAULT_CONFIG_PATHS (or an explicit path)
2. KUBEFORGE_* environment variables (a .env file is honoured)
3. Default values
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("kubeforge.config")

# Default configuration paths
DEFAULT_CONFIG_PATHS = [
    Path("/etc/kubeforge/config.yaml"),
    Path("~/.config/kubeforge/config.yaml").expanduser(),
    Path("kubeforge.yaml").absolute(),
]

READINESS_BACKENDS = ("kubectl", "api")


def _env(name: str, default: str) -> str:
    return os.getenv(f"KUBEFORGE_{name}", default)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    model_config = {"validate_default": True}

    level: str = Field(
        default_factory=lambda: _env("LOG_LEVEL", "INFO").upper(),
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    format: str = Field(
        default_factory=lambda: _env("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
        description="Log record format"
    )
    file: Optional[str] = Field(
        default_factory=lambda: os.getenv("KUBEFORGE_LOG_FILE") or None,
        description="Path to log file (if None, logs only to the console)"
    )
    max_size_mb: int = Field(
        default_factory=lambda: _env("LOG_MAX_SIZE_MB", "10"),
        description="Maximum log file size in MB before rotation"
    )
    backup_count: int = Field(
        default_factory=lambda: _env("LOG_BACKUP_COUNT", "3"),
        description="Number of backup log files to keep"
    )


class ReleaseConfig(BaseModel):
    """Pinned upstream releases and download locations."""
    model_config = {"validate_default": True}

    kubernetes_repo_version: str = Field(
        default_factory=lambda: _env("KUBERNETES_REPO_VERSION", "v1.29"),
        description="pkgs.k8s.io minor stream used for the package repository"
    )
    calico_version: str = Field(
        default_factory=lambda: _env("CALICO_VERSION", "v3.27.0"),
        description="Tigera operator release"
    )
    flannel_image: str = Field(
        default_factory=lambda: _env("FLANNEL_IMAGE", "docker.io/flannel/flannel:v0.21.4"),
        description="Flannel container image"
    )
    weave_manifest_url: str = Field(
        default_factory=lambda: _env(
            "WEAVE_MANIFEST_URL",
            "https://github.com/weaveworks/weave/releases/download/v2.8.1/weave-daemonset-k8s-1.11.yaml",
        )
    )
    cilium_repo_url: str = Field(default_factory=lambda: _env("CILIUM_REPO_URL", "https://helm.cilium.io/"))
    helm_install_script_url: str = Field(
        default_factory=lambda: _env(
            "HELM_INSTALL_SCRIPT_URL",
            "https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3",
        )
    )
    dashboard_version: str = Field(default_factory=lambda: _env("DASHBOARD_VERSION", "v2.7.0"))
    docker_repo_base: str = Field(default_factory=lambda: _env("DOCKER_REPO_BASE", "https://download.docker.com/linux"))

    @field_validator("kubernetes_repo_version", "calico_version", "dashboard_version")
    @classmethod
    def ensure_v_prefix(cls, v: str) -> str:
        """Release tags are always written with a leading 'v'."""
        v = v.strip()
        return v if v.startswith("v") else f"v{v}"

    @property
    def calico_operator_url(self) -> str:
        return (
            "https://raw.githubusercontent.com/projectcalico/calico/"
            f"{self.calico_version}/manifests/tigera-operator.yaml"
        )

    @property
    def dashboard_manifest_url(self) -> str:
        return (
            "https://raw.githubusercontent.com/kubernetes/dashboard/"
            f"{self.dashboard_version}/aio/deploy/recommended.yaml"
        )

    @property
    def kubernetes_repo_base(self) -> str:
        return f"https://pkgs.k8s.io/core:/stable:/{self.kubernetes_repo_version}"


class PathsConfig(BaseModel):
    """Host paths read or written during provisioning."""
    model_config = {"validate_default": True}

    work_dir: str = Field(
        default_factory=lambda: _env("WORK_DIR", "/tmp"),
        description="Directory for generated manifests (fixed file names, overwritten each run)"
    )
    os_release: str = "/etc/os-release"
    fstab: str = "/etc/fstab"
    modules_load: str = "/etc/modules-load.d/k8s.conf"
    sysctl_conf: str = "/etc/sysctl.d/k8s.conf"
    containerd_config: str = "/etc/containerd/config.toml"
    apt_sources_dir: str = "/etc/apt/sources.list.d"
    apt_keyrings_dir: str = "/etc/apt/keyrings"
    docker_keyring: str = "/usr/share/keyrings/docker-archive-keyring.gpg"
    yum_repos_dir: str = "/etc/yum.repos.d"
    selinux_config: str = "/etc/selinux/config"
    bridge_nf_call_iptables: str = "/proc/sys/net/bridge/bridge-nf-call-iptables"
    admin_kubeconfig: str = Field(default_factory=lambda: _env("ADMIN_KUBECONFIG", "/etc/kubernetes/admin.conf"))

    def work_file(self, name: str) -> Path:
        return Path(self.work_dir) / name


class ReadinessConfig(BaseModel):
    """Pod readiness polling."""
    model_config = {"validate_default": True}

    backend: str = Field(
        default_factory=lambda: _env("READINESS_BACKEND", "kubectl"),
        description="How pod phases are queried: 'kubectl' or 'api' (kubernetes client)"
    )
    interval: float = Field(default_factory=lambda: _env("POLL_INTERVAL", "10"))
    plugin_timeout: float = Field(default_factory=lambda: _env("PLUGIN_TIMEOUT", "300"))
    connectivity_timeout: float = Field(default_factory=lambda: _env("CONNECTIVITY_TIMEOUT", "120"))
    settle_delay: float = Field(
        default_factory=lambda: _env("SETTLE_DELAY", "10"),
        description="Pause after applying the Calico resources before polling starts"
    )

    @field_validator("backend")
    @classmethod
    def check_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in READINESS_BACKENDS:
            raise ValueError(f"readiness backend must be one of {', '.join(READINESS_BACKENDS)}")
        return v


class KubeforgeConfig(BaseModel):
    """Top-level kubeforge settings."""
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    releases: ReleaseConfig = Field(default_factory=ReleaseConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    readiness: ReadinessConfig = Field(default_factory=ReadinessConfig)
    dry_run: bool = Field(default_factory=lambda: _env("DRY_RUN", "false"))

    model_config = {"extra": "ignore", "validate_default": True}

    @classmethod
    def load(cls, config_path: Optional[Union[str, Path]] = None) -> 'KubeforgeConfig':
        """Load configuration from file and environment variables."""
        # Load environment variables from .env file if it exists
        load_dotenv()
        config_data: Dict[str, Any] = {}

        if config_path:
            config_path = Path(config_path).expanduser().absolute()
            if config_path.exists():
                config_data = cls._load_config_file(config_path)
            else:
                logger.warning(f"Config file not found: {config_path}, using defaults")
        else:
            source = find_config_file()
            if source:
                config_data = cls._load_config_file(source)

        return cls(**config_data)

    @classmethod
    def _load_config_file(cls, path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML file."""
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            return {}
        logger.debug(f"Loaded config from {path}")
        return data

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to a file."""
        path = Path(path).expanduser().absolute()
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            yaml.safe_dump(self.model_dump(exclude_none=True), f, default_flow_style=False, sort_keys=False)


def find_config_file(paths: Optional[List[Path]] = None) -> Optional[Path]:
    """Return the first existing config file."""
    for path in paths or DEFAULT_CONFIG_PATHS:
        path = Path(path).expanduser().absolute()
        if path.exists():
            return path
    return None
