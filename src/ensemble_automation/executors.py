from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence, Union
import logging
import os
import shutil
import subprocess

logger = logging.getLogger(__name__)

HostSource = Union[str, Callable[[], str]]


@dataclass
class CommandResult:
    command: list[str]
    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Executor:
    """Base uplink used by action procedures to reach one node.

    Commands are lists of shell words. They are joined and interpreted by the
    node's shell, so operators such as ``&&`` or ``>`` pass through unquoted.
    """

    def __init__(self, node_name: str, *, dry_run: bool = False):
        self.node_name = node_name
        self.dry_run = dry_run

    def run(
        self,
        command: Sequence[str],
        *,
        check: bool = False,
        mutable: bool = True,
        env: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Run ``command`` on the node and optionally skip it during dry-runs."""

        cmd_list = [str(part) for part in command]
        if self.dry_run and mutable:
            logger.debug("node=%s dry-run skipped: %s", self.node_name, " ".join(cmd_list))
            return CommandResult(cmd_list, "", "skipped (dry-run)", 0)
        return self._execute(self.command_line(cmd_list), cmd_list, check=check, env=env, timeout=timeout)

    def must_run(self, command: Sequence[str], **kwargs) -> CommandResult:
        """Like :meth:`run` but raise ``CalledProcessError`` on a non-zero exit."""

        return self.run(command, check=True, **kwargs)

    def sync_to(self, local_path: Union[str, Path], remote_path: str) -> CommandResult:
        raise NotImplementedError

    def command_line(self, command: list[str]) -> list[str]:
        return ["sh", "-c", " ".join(command)]

    def _execute(
        self,
        argv: list[str],
        display: list[str],
        *,
        check: bool,
        env: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        exec_env = None
        if env:
            exec_env = os.environ.copy()
            exec_env.update(env)

        logger.debug("node=%s run: %s", self.node_name, " ".join(display))
        proc = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            check=False,
            env=exec_env,
            timeout=timeout,
        )
        if check and proc.returncode != 0:
            raise subprocess.CalledProcessError(
                proc.returncode,
                display,
                proc.stdout,
                proc.stderr,
            )
        return CommandResult(display, proc.stdout, proc.stderr, proc.returncode)


class LocalExecutor(Executor):
    """Executor that acts directly on the local host."""

    def sync_to(self, local_path: Union[str, Path], remote_path: str) -> CommandResult:
        source = Path(local_path)
        dest = Path(remote_path)
        display = ["copy", str(source), str(dest)]
        if self.dry_run:
            return CommandResult(display, "", "skipped (dry-run)", 0)
        dest.parent.mkdir(parents=True, exist_ok=True)
        if source.is_dir():
            shutil.copytree(source, dest, dirs_exist_ok=True)
        else:
            shutil.copyfile(source, dest)
        return CommandResult(display, "", "", 0)


class SshExecutor(Executor):
    """Executor that reaches the node over ssh and uploads with rsync.

    ``host`` may be a callable so that a DNS name discovered after the
    executor was created is picked up on each command.
    """

    def __init__(
        self,
        node_name: str,
        host: HostSource,
        *,
        user: Optional[str] = None,
        identity_file: Optional[str] = None,
        port: Optional[int] = None,
        connect_timeout: int = 10,
        dry_run: bool = False,
    ):
        super().__init__(node_name, dry_run=dry_run)
        self._host = host
        self.user = user
        self.identity_file = identity_file
        self.port = port
        self.connect_timeout = connect_timeout

    @property
    def host(self) -> str:
        host = self._host() if callable(self._host) else self._host
        if not host:
            raise ConnectionError(f"no hostname known for node {self.node_name}")
        return host

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    def ssh_options(self) -> list[str]:
        options = [
            "-o", f"ConnectTimeout={self.connect_timeout}",
            "-o", "StrictHostKeyChecking=no",
            "-o", "BatchMode=yes",
        ]
        if self.identity_file:
            options.extend(["-i", self.identity_file])
        if self.port:
            options.extend(["-p", str(self.port)])
        return options

    def command_line(self, command: list[str]) -> list[str]:
        return ["ssh", "-n", *self.ssh_options(), self.destination, "--", *command]

    def sync_to(self, local_path: Union[str, Path], remote_path: str) -> CommandResult:
        remote = f"{self.destination}:{remote_path}"
        display = ["rsync", str(local_path), remote]
        if self.dry_run:
            return CommandResult(display, "", "skipped (dry-run)", 0)
        argv = [
            "rsync",
            "-aqi",
            "-e",
            " ".join(["ssh", *self.ssh_options()]),
            str(local_path),
            remote,
        ]
        return self._execute(argv, display, check=True)
