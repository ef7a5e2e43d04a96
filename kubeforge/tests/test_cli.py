import pytest
import yaml
from typer.testing import CliRunner

from kubeforge import __version__
from kubeforge.cli import app
from kubeforge.commands.install import load_answers, select_plugin
from kubeforge.config import KubeforgeConfig
from kubeforge.exceptions import AnswersError, KubeforgeError
from kubeforge.models import NetworkPlugin
from kubeforge.utils.prompt import Prompter

cli = CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "kubeforge.yaml"
    path.write_text(yaml.safe_dump({"readiness": {"backend": "kubectl"}}))
    return str(path)


def test_help():
    result = cli.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "Usage" in result.output
    for command in ("install", "join", "token", "upgrade", "dashboard", "status", "config", "network", "node"):
        assert command in result.output


def test_version():
    result = cli.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_network_commands_exist():
    result = cli.invoke(app, ["network", "--help"])
    assert result.exit_code == 0
    for command in ("install", "detect", "test", "version"):
        assert command in result.output


def test_node_label(runner, config_file, monkeypatch):
    monkeypatch.setattr("kubeforge.commands.node.make_runner", lambda settings: runner)
    result = cli.invoke(app, ["--config", config_file, "node", "label", "worker-1", "role=worker", "tier=db"])
    assert result.exit_code == 0
    assert runner.commands == [
        "kubectl label nodes worker-1 role=worker --overwrite",
        "kubectl label nodes worker-1 tier=db --overwrite",
    ]


def test_node_label_stops_at_first_failure(runner, config_file, monkeypatch):
    monkeypatch.setattr("kubeforge.commands.node.make_runner", lambda settings: runner)
    runner.fail("kubectl label nodes worker-1 role=worker")
    result = cli.invoke(app, ["--config", config_file, "node", "label", "worker-1", "role=worker", "tier=db"])
    assert result.exit_code == 1
    assert len(runner.commands) == 1


def test_node_label_rejects_bad_pair(runner, config_file, monkeypatch):
    monkeypatch.setattr("kubeforge.commands.node.make_runner", lambda settings: runner)
    result = cli.invoke(app, ["--config", config_file, "node", "label", "worker-1", "role"])
    assert result.exit_code == 2
    assert runner.commands == []


def test_network_detect(runner, config_file, monkeypatch):
    monkeypatch.setattr("kubeforge.commands.network.make_runner", lambda settings: runner)
    runner.respond("kubectl get pods -l app=flannel", stdout="Running Running")
    result = cli.invoke(app, ["--config", config_file, "network", "detect"])
    assert result.exit_code == 0
    assert "flannel" in result.output.split()


def test_network_detect_nothing_installed(runner, config_file, monkeypatch):
    monkeypatch.setattr("kubeforge.commands.network.make_runner", lambda settings: runner)
    result = cli.invoke(app, ["--config", config_file, "network", "detect"])
    assert result.exit_code == 1
    assert "No network plugin detected" in result.output


def test_network_install_unknown_plugin(runner, config_file, monkeypatch):
    monkeypatch.setattr("kubeforge.commands.network.make_runner", lambda settings: runner)
    result = cli.invoke(app, ["--config", config_file, "network", "install", "--plugin", "contiv"])
    assert result.exit_code == 1
    assert runner.commands == []


def test_invalid_config_file(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump({"readiness": {"backend": "watch"}}))
    result = cli.invoke(app, ["--config", str(path), "status"])
    assert result.exit_code == 1


def test_valid_answers_file(tmp_path):
    path = tmp_path / "answers.yaml"
    path.write_text(yaml.safe_dump({
        "control_plane": True,
        "pod_cidr": "10.244.0.0/16",
        "plugin": 4,
        "labels": {"role": "control-plane"},
        "taints": ["dedicated=infra:NoSchedule"],
    }))
    answers = load_answers(path)
    assert answers["plugin"] == 4
    assert answers["labels"] == {"role": "control-plane"}


def test_invalid_answers_file(tmp_path):
    path = tmp_path / "answers.yaml"
    path.write_text(yaml.safe_dump({"control_plane": "yes please"}))
    with pytest.raises(AnswersError):
        load_answers(path)


def test_answers_file_with_unknown_key(tmp_path):
    path = tmp_path / "answers.yaml"
    path.write_text(yaml.safe_dump({"podcidr": "10.0.0.0/8"}))
    with pytest.raises(AnswersError):
        load_answers(path)


def test_missing_answers_file(tmp_path):
    with pytest.raises(AnswersError):
        load_answers(tmp_path / "missing.yaml")


@pytest.mark.parametrize("selection, expected", [
    (1, NetworkPlugin.CALICO),
    ("4", NetworkPlugin.CILIUM),
    ("weave", NetworkPlugin.WEAVE),
    ("contiv", NetworkPlugin.CALICO),
])
def test_select_plugin(selection, expected):
    assert select_plugin(Prompter({"plugin": selection})) == expected


def test_prompter_prefers_answers(monkeypatch):
    asked = []
    monkeypatch.setattr("kubeforge.utils.prompt.typer.prompt", lambda text, **kw: asked.append(text) or "typed")
    prompter = Prompter({"cluster_name": "prod"})
    assert prompter.ask("cluster_name", "Enter Cluster Name", "kubernetes") == "prod"
    assert prompter.ask("pod_cidr", "Enter Pod Network CIDR", "10.244.0.0/16") == "typed"
    assert asked == ["Enter Pod Network CIDR"]
    assert prompter.get("labels", {}) == {}


def test_answers_are_logged_redacted(tmp_path, caplog):
    caplog.set_level("DEBUG")
    join_command = "kubeadm join 10.0.0.5:6443 --token abcdef.0123456789abcdef"
    path = tmp_path / "answers.yaml"
    path.write_text(yaml.safe_dump({"control_plane": False, "join_command": join_command}))
    answers = load_answers(path)
    assert answers["join_command"] == join_command
    assert "Answers:" in caplog.text
    assert "abcdef.0123456789abcdef" not in caplog.text


def test_config_shows_effective_settings(config_file):
    result = cli.invoke(app, ["--config", config_file, "config"])
    assert result.exit_code == 0
    assert yaml.safe_load(result.stdout)["readiness"]["backend"] == "kubectl"


def test_config_saves_settings(config_file, tmp_path):
    out = tmp_path / "etc" / "kubeforge.yaml"
    result = cli.invoke(app, ["--config", config_file, "config", str(out)])
    assert result.exit_code == 0
    saved = KubeforgeConfig.load(out)
    assert saved.readiness.backend == "kubectl"
    assert saved.paths.admin_kubeconfig == "/etc/kubernetes/admin.conf"


def test_network_detect_reports_query_errors(runner, config_file, monkeypatch):
    def broken_poller(settings, runner):
        raise KubeforgeError("kubeconfig not found: /etc/kubernetes/admin.conf")

    monkeypatch.setattr("kubeforge.commands.network.make_runner", lambda settings: runner)
    monkeypatch.setattr("kubeforge.commands.network.make_pod_poller", broken_poller)
    result = cli.invoke(app, ["--config", config_file, "network", "detect"])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)


def test_invalid_environment_value_exits_cleanly(config_file, monkeypatch):
    monkeypatch.setenv("KUBEFORGE_POLL_INTERVAL", "abc")
    result = cli.invoke(app, ["--config", config_file, "status"])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
