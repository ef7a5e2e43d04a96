import pytest
import yaml
from pydantic import ValidationError

from kubeforge.config import KubeforgeConfig, ReadinessConfig, ReleaseConfig, find_config_file


def test_defaults(monkeypatch):
    for name in ("KUBEFORGE_POLL_INTERVAL", "KUBEFORGE_PLUGIN_TIMEOUT", "KUBEFORGE_READINESS_BACKEND",
                 "KUBEFORGE_KUBERNETES_REPO_VERSION", "KUBEFORGE_CALICO_VERSION", "KUBEFORGE_WORK_DIR"):
        monkeypatch.delenv(name, raising=False)
    settings = KubeforgeConfig()
    assert settings.readiness.interval == 10
    assert settings.readiness.plugin_timeout == 300
    assert settings.readiness.backend == "kubectl"
    assert settings.releases.kubernetes_repo_base == "https://pkgs.k8s.io/core:/stable:/v1.29"
    assert settings.releases.calico_operator_url.endswith("/v3.27.0/manifests/tigera-operator.yaml")
    assert str(settings.paths.work_file("x.yaml")) == "/tmp/x.yaml"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("KUBEFORGE_PLUGIN_TIMEOUT", "60")
    monkeypatch.setenv("KUBEFORGE_KUBERNETES_REPO_VERSION", "1.30")
    monkeypatch.setenv("KUBEFORGE_WORK_DIR", "/var/tmp/kf")
    settings = KubeforgeConfig()
    assert settings.readiness.plugin_timeout == 60
    assert settings.releases.kubernetes_repo_version == "v1.30"
    assert str(settings.paths.work_file("a")) == "/var/tmp/kf/a"
    assert settings.releases.kubernetes_repo_base == "https://pkgs.k8s.io/core:/stable:/v1.30"


def test_invalid_backend():
    with pytest.raises(ValidationError):
        ReadinessConfig(backend="watch")


def test_version_prefix():
    assert ReleaseConfig(calico_version="3.26.1").calico_version == "v3.26.1"


def test_load_and_save(tmp_path):
    path = tmp_path / "kubeforge.yaml"
    path.write_text(yaml.safe_dump({
        "readiness": {"interval": 2, "backend": "api"},
        "releases": {"dashboard_version": "v2.7.0"},
        "unknown_key": True,
    }))
    settings = KubeforgeConfig.load(path)
    assert settings.readiness.interval == 2
    assert settings.readiness.backend == "api"

    out = tmp_path / "saved" / "config.yaml"
    settings.save(out)
    assert yaml.safe_load(out.read_text())["readiness"]["interval"] == 2


def test_load_missing_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("KUBEFORGE_POLL_INTERVAL", raising=False)
    settings = KubeforgeConfig.load(tmp_path / "missing.yaml")
    assert settings.readiness.interval == 10


def test_find_config_file(tmp_path):
    second = tmp_path / "second.yaml"
    second.write_text("{}")
    assert find_config_file([tmp_path / "first.yaml", second]) == second
    assert find_config_file([tmp_path / "none.yaml"]) is None


def test_environment_values_are_normalized(monkeypatch):
    monkeypatch.setenv("KUBEFORGE_CALICO_VERSION", "3.26.1")
    monkeypatch.setenv("KUBEFORGE_READINESS_BACKEND", "API")
    monkeypatch.setenv("KUBEFORGE_POLL_INTERVAL", "2.5")
    monkeypatch.setenv("KUBEFORGE_DRY_RUN", "yes")
    settings = KubeforgeConfig()
    assert "/v3.26.1/manifests/" in settings.releases.calico_operator_url
    assert settings.readiness.backend == "api"
    assert settings.readiness.interval == 2.5
    assert settings.dry_run is True


@pytest.mark.parametrize("name, value", [
    ("KUBEFORGE_POLL_INTERVAL", "abc"),
    ("KUBEFORGE_LOG_BACKUP_COUNT", "many"),
    ("KUBEFORGE_READINESS_BACKEND", "watch"),
])
def test_invalid_environment_value(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        KubeforgeConfig()
