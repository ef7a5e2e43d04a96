"""Interactive prompts that can be pre-answered from an answers file."""
import logging
from typing import Any, Dict, Optional

import typer

logger = logging.getLogger("kubeforge.prompt")


class Prompter:
    """Asks the operator questions, unless the answers dict already has them.

    Args:
        answers: Pre-seeded answers keyed by question name
    """

    def __init__(self, answers: Optional[Dict[str, Any]] = None):
        self.answers = dict(answers or {})

    def ask(self, key: str, text: str, default: str = "") -> str:
        if key in self.answers:
            value = str(self.answers[key])
            logger.debug(f"Answer for {key} taken from answers file")
            return value
        return str(typer.prompt(text, default=default, show_default=bool(default))).strip()

    def confirm(self, key: str, text: str, default: bool = False) -> bool:
        if key in self.answers:
            return bool(self.answers[key])
        return typer.confirm(text, default=default)

    def get(self, key: str, default: Any = None) -> Any:
        """Answers that have no interactive prompt (labels, taints, ...)."""
        return self.answers.get(key, default)
