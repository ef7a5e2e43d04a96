from pathlib import Path

import pytest
import typer
import yaml

from kubeforge.commands.install import run_install
from kubeforge.modules.readiness import PodReadinessPoller, kubectl_pod_phases

JOIN = "kubeadm join 10.0.0.5:6443 --token abcdef.0123456789abcdef --discovery-token-ca-cert-hash sha256:1234"

CONTROL_PLANE = {
    "control_plane": True,
    "pod_cidr": "10.244.0.0/16",
    "service_cidr": "10.96.0.0/12",
    "api_server_address": "10.0.0.5",
    "cluster_name": "kubernetes",
    "node_name": "cp-1",
    "high_availability": False,
    "reinstall_plugin": True,
    "plugin": 2,
    "connectivity_test": True,
    "continue_on_failure": False,
    "dashboard": False,
    "labels": {"role": "control-plane"},
    "taints": ["dedicated=infra:NoSchedule"],
}


@pytest.fixture
def host(runner, settings, clock, tmp_path, monkeypatch):
    """A jammy host whose commands all go through the fake runner."""
    etc = Path(settings.paths.os_release).parent
    etc.mkdir(parents=True, exist_ok=True)
    Path(settings.paths.os_release).write_text('ID=ubuntu\nVERSION_ID="22.04"\nVERSION_CODENAME=jammy\n')
    Path(settings.paths.fstab).write_text("/swapfile swap swap defaults 0 0\n")
    admin = Path(settings.paths.admin_kubeconfig)
    admin.parent.mkdir(parents=True, exist_ok=True)
    admin.write_text("apiVersion: v1\nkind: Config\n")

    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("SUDO_USER", raising=False)
    monkeypatch.setattr("kubeforge.commands.check_root", lambda: True)
    monkeypatch.setattr("kubeforge.commands.install.make_runner", lambda settings: runner)
    monkeypatch.setattr(
        "kubeforge.commands.install.make_pod_poller",
        lambda settings, runner: PodReadinessPoller(kubectl_pod_phases(runner), clock=clock, sleep=clock.sleep),
    )

    def unexpected(text, **kwargs):
        raise AssertionError(f"unexpected prompt: {text}")

    monkeypatch.setattr("kubeforge.utils.prompt.typer.prompt", unexpected)
    monkeypatch.setattr("kubeforge.utils.prompt.typer.confirm", unexpected)

    runner.respond("kubectl get pods", stdout="Running Running")
    runner.respond("kubectl get pod network-test-2", stdout="10.244.1.7")
    runner.respond("kubeadm token create", stdout=JOIN + "\n")
    runner.respond("kubeadm init phase upload-certs", stdout="[upload-certs] Using certificate key:\nabc123\n")
    return runner


def test_control_plane_install(host, settings, tmp_path, capsys):
    run_install(settings, dict(CONTROL_PLANE))

    commands = host.commands
    assert commands[:3] == [
        "apt-get update",
        "apt-get upgrade -y",
        "apt-get install -y apt-transport-https ca-certificates curl software-properties-common gnupg2",
    ]
    assert "apt-get install -y containerd.io" in commands
    assert "apt-mark hold kubelet kubeadm kubectl" in commands
    init = f"kubeadm init --config {settings.paths.work_file('kubeadm-config.yaml')} --upload-certs"
    assert init in commands
    assert f"kubectl apply -f {settings.paths.work_file('kube-flannel.yaml')}" in commands
    assert "kubectl label nodes cp-1 role=control-plane --overwrite" in commands
    assert "kubectl taint nodes cp-1 dedicated=infra:NoSchedule --overwrite" in commands
    assert any(command.startswith("kubectl exec network-test-1") for command in commands)
    assert commands[-3:] == [
        "kubectl get nodes",
        "kubectl get pods --all-namespaces",
        "kubectl get componentstatuses",
    ]
    assert (tmp_path / "home" / ".kube" / "config").read_text() == "apiVersion: v1\nkind: Config\n"

    kubeadm_config = list(yaml.safe_load_all(settings.paths.work_file("kubeadm-config.yaml").read_text()))
    assert not any("controlPlaneEndpoint" in doc for doc in kubeadm_config if doc)

    out = capsys.readouterr().out
    assert JOIN in out
    assert "--certificate-key" not in out


def test_worker_install(host, settings):
    run_install(settings, {"control_plane": False, "join_command": JOIN})

    assert not host.ran("kubeadm init")
    assert host.commands[-1] == f"sh -c {JOIN}"
    assert host.call_for("sh -c")["stream"] is True


def test_worker_without_join_command(host, settings):
    run_install(settings, {"control_plane": False, "join_command": ""})
    assert not host.ran("sh -c kubeadm join")
    assert host.commands[-1] == "systemctl start kubelet"


def test_high_availability_prints_control_plane_join(host, settings, capsys):
    answers = dict(CONTROL_PLANE, high_availability=True, control_plane_endpoint="lb.example.com:6443")
    run_install(settings, answers)

    kubeadm_config = settings.paths.work_file("kubeadm-config.yaml").read_text()
    assert "controlPlaneEndpoint: lb.example.com:6443" in kubeadm_config

    out = capsys.readouterr().out
    assert f"{JOIN} --control-plane --certificate-key abc123" in out


def test_fatal_step_exits(host, settings):
    host.fail("kubeadm init")
    with pytest.raises(typer.Exit) as exc:
        run_install(settings, dict(CONTROL_PLANE))
    assert exc.value.exit_code == 1
    assert not host.ran("kubectl apply")


def test_connectivity_failure_stops_install(host, settings):
    host.fail("kubectl exec")
    with pytest.raises(typer.Exit) as exc:
        run_install(settings, dict(CONTROL_PLANE))
    assert exc.value.exit_code == 1
    assert not host.ran("kubeadm token create")


def test_connectivity_failure_can_be_ignored(host, settings, capsys):
    host.fail("kubectl exec")
    run_install(settings, dict(CONTROL_PLANE, continue_on_failure=True))
    assert host.ran("kubeadm token create")
    assert JOIN in capsys.readouterr().out
