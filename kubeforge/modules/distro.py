"""Linux distribution detection from /etc/os-release."""
import logging
import re
from typing import Dict

from ..exceptions import ReadError
from ..models import Distribution, DistroKind

logger = logging.getLogger("kubeforge.distro")

OS_RELEASE_PATH = "/etc/os-release"

KNOWN_IDS: Dict[str, DistroKind] = {
    "ubuntu": DistroKind.DEBIAN,
    "debian": DistroKind.DEBIAN,
    "centos": DistroKind.REDHAT,
    "rhel": DistroKind.REDHAT,
    "fedora": DistroKind.REDHAT,
}

_ID_RE = re.compile(r'^ID="?([^"\n]+)"?', re.MULTILINE)
_VERSION_RE = re.compile(r'^VERSION_ID="?([^"\n]+)"?', re.MULTILINE)
_CODENAME_RE = re.compile(r'^VERSION_CODENAME="?([^"\n]*)"?', re.MULTILINE)


def _field(pattern: re.Pattern, text: str) -> str:
    match = pattern.search(text)
    return match.group(1).strip() if match else ""


def parse_os_release(text: str) -> Distribution:
    """Classify a host from the body of an os-release file.

    Unrecognized IDs yield DistroKind.UNKNOWN; installers reject those later.
    """
    name = _field(_ID_RE, text)
    kind = KNOWN_IDS.get(name, DistroKind.UNKNOWN)
    return Distribution(
        kind=kind,
        name=name,
        version=_field(_VERSION_RE, text),
        codename=_field(_CODENAME_RE, text),
    )


def detect(path: str = OS_RELEASE_PATH) -> Distribution:
    """Read and parse the os-release file.

    Raises:
        ReadError: If the file cannot be read
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ReadError(path, e) from e

    dist = parse_os_release(text)
    logger.debug(f"Parsed {path}: id={dist.name} version={dist.version} kind={dist.kind.value}")
    return dist
