import logging

from kubeforge.config import LoggingConfig
from kubeforge.logging import add_file_handler
from kubeforge.utils import REDACTED, redact_sensitive_data, redact_text

JOIN = ("kubeadm join 10.0.0.5:6443 --token abcdef.0123456789abcdef "
        "--discovery-token-ca-cert-hash sha256:1234 --control-plane --certificate-key=deadbeef")


def test_redact_text():
    redacted = redact_text(JOIN)
    assert "abcdef.0123456789abcdef" not in redacted
    assert "sha256:1234" not in redacted
    assert "deadbeef" not in redacted
    assert redacted.startswith("kubeadm join 10.0.0.5:6443 --token [REDACTED]")
    assert "--certificate-key=[REDACTED]" in redacted


def test_redact_sensitive_data():
    data = {"token": "abc", "nested": [{"join_command": JOIN}], "cluster_name": "prod", "cmd": JOIN}
    redacted = redact_sensitive_data(data)
    assert redacted["token"] == REDACTED
    assert redacted["nested"][0]["join_command"] == REDACTED
    assert redacted["cluster_name"] == "prod"
    assert "abcdef" not in redacted["cmd"]


def test_file_handler_redacts(tmp_path):
    log_file = tmp_path / "logs" / "kubeforge.log"
    settings = LoggingConfig(file=str(log_file), level="INFO")
    handler = add_file_handler(settings, logger_name="kubeforge.test")
    logger = logging.getLogger("kubeforge.test")
    logger.setLevel(logging.INFO)
    try:
        logger.info("running %s", JOIN)
        handler.flush()
    finally:
        logger.removeHandler(handler)
        handler.close()

    text = log_file.read_text()
    assert "kubeadm join" in text
    assert "abcdef.0123456789abcdef" not in text
    assert "deadbeef" not in text
