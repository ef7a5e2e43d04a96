"""Thin wrapper around subprocess for running host commands."""
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..exceptions import CommandError

logger = logging.getLogger("kubeforge.runner")


@dataclass
class CommandResult:
    """Outcome of a finished command."""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Executes external commands synchronously.

    Output is captured unless ``stream`` is set, in which case the child
    inherits the terminal so long-running operations stay visible.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def run(
        self,
        cmd: Sequence[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        stream: bool = False,
        check: bool = True,
        sensitive: bool = False,
    ) -> CommandResult:
        """Run a command and return its result.

        Args:
            cmd: Program and arguments
            env: Variables merged over the current environment
            stream: Send output to the terminal instead of capturing it
            check: Raise CommandError on a non-zero exit
            sensitive: Never log the arguments (join commands carry tokens)

        Returns:
            CommandResult with captured stdout/stderr (empty when streamed)

        Raises:
            CommandError: If the command cannot be started, or exits non-zero with check=True
        """
        args = [str(part) for part in cmd]
        display = f"{args[0]} <redacted>" if sensitive else " ".join(args)

        if self.dry_run:
            logger.info(f"[DRY RUN] Would execute: {display}")
            return CommandResult(args=args, returncode=0)

        logger.debug(f"💻 Running: {display}")
        merged_env = None
        if env:
            merged_env = dict(os.environ)
            merged_env.update(env)

        try:
            returncode, stdout, stderr = self._execute(args, merged_env, stream)
        except OSError as e:
            logger.error(f"❌ Could not start: {display} ({e})")
            raise CommandError(args, os_error=e, display=display) from e

        result = CommandResult(args=args, returncode=returncode, stdout=stdout, stderr=stderr)
        if stdout and not sensitive:
            logger.debug(f"🟢 Output:\n{stdout}")

        if returncode != 0 and check:
            msg = f"❌ Command failed: {display} (exit code: {returncode})"
            if stderr and not sensitive:
                msg += f"\nStderr:\n{stderr}"
            logger.debug(msg)
            raise CommandError(args, returncode, stderr, display=display)
        return result

    def shell(self, script: str, **kwargs) -> CommandResult:
        """Run a script through ``sh -c``."""
        return self.run(["sh", "-c", script], **kwargs)

    def write_file(self, path: Union[str, Path], content: str, mode: Optional[int] = 0o644) -> None:
        """Write a host file, creating parent directories as needed.

        ``mode=None`` leaves permissions alone (procfs entries).
        """
        path = Path(path)
        if self.dry_run:
            logger.info(f"[DRY RUN] Would write {path} ({len(content)} bytes)")
            return
        logger.debug(f"📝 Writing {path}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        if mode is not None:
            os.chmod(path, mode)

    def _execute(
        self,
        args: List[str],
        env: Optional[Dict[str, str]],
        stream: bool,
    ) -> Tuple[int, str, str]:
        completed = subprocess.run(
            args,
            env=env,
            text=True,
            stdout=None if stream else subprocess.PIPE,
            stderr=None if stream else subprocess.PIPE,
        )
        return completed.returncode, completed.stdout or "", completed.stderr or ""
