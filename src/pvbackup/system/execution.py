# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/system/execution.py

"""
Execution engine for external command pipelines.

Commands are described declaratively (CommandSpec, Pipeline) and handed to a
CommandExecutor, which owns the dry-run flag. Environment values tagged as
secret reach the child process but are replaced by a redaction marker in
every rendered form (logs, dry-run output, error messages).
"""

import os
import shlex
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from loguru import logger

from pvbackup.system.exceptions import ExecError

REDACTED = "<redacted>"


class Stdio(Enum):
    """How a stream of a command is wired."""
    INHERIT = "inherit"
    NULL = "null"
    PIPE = "pipe"


@dataclass(frozen=True)
class EnvValue:
    """An environment variable value, optionally secret."""
    value: str
    secret: bool = False

    @classmethod
    def plain(cls, value: str) -> "EnvValue":
        return cls(value, secret=False)

    @classmethod
    def hidden(cls, value: str) -> "EnvValue":
        return cls(value, secret=True)

    def render(self) -> str:
        return REDACTED if self.secret else shlex.quote(self.value)


@dataclass
class CommandSpec:
    """One stage of a pipeline."""
    program: str
    args: list[str] = field(default_factory=list)
    env: dict[str, EnvValue] = field(default_factory=dict)
    stdin: Stdio = Stdio.INHERIT
    stdout: Stdio = Stdio.INHERIT
    stderr: Stdio = Stdio.INHERIT

    def with_env(self, key: str, value: EnvValue) -> "CommandSpec":
        self.env[key] = value
        return self

    def render(self, program: str | None = None) -> str:
        parts = [f"{key}={value.render()}" for key, value in self.env.items()]
        parts.append(shlex.quote(program or self.program))
        parts.extend(shlex.quote(arg) for arg in self.args)
        return " ".join(parts)


@dataclass
class Pipeline:
    """Ordered stages connected stdout to stdin."""
    commands: list[CommandSpec]

    @classmethod
    def of(cls, *commands: CommandSpec) -> "Pipeline":
        return cls(list(commands))

    def __len__(self) -> int:
        return len(self.commands)


Runnable = Union[CommandSpec, Pipeline]


def cmd(program: str, *args: str, **kwargs) -> CommandSpec:
    """Shorthand for building a CommandSpec from positional arguments."""
    return CommandSpec(program, [str(a) for a in args], **kwargs)


def _as_pipeline(runnable: Runnable) -> Pipeline:
    if isinstance(runnable, Pipeline):
        return runnable
    return Pipeline([runnable])


def _stream(mode: Stdio):
    if mode is Stdio.PIPE:
        return subprocess.PIPE
    if mode is Stdio.NULL:
        return subprocess.DEVNULL
    return None


def _child_env(spec: CommandSpec) -> dict[str, str] | None:
    if not spec.env:
        return None
    env = dict(os.environ)
    env.update({key: value.value for key, value in spec.env.items()})
    return env


class CommandExecutor:
    """
    Runs pipelines, or only renders and logs them in dry-run mode.

    Args:
        dry_run: when True, run() never spawns a process
        bin_overrides: program name -> executable path replacements
    """

    def __init__(self, dry_run: bool = False, bin_overrides: dict[str, str] | None = None):
        self.dry_run = dry_run
        self.bin_overrides = dict(bin_overrides or {})

    def resolve(self, program: str) -> str:
        return self.bin_overrides.get(program, program)

    def _argv(self, spec: CommandSpec) -> list[str]:
        return [self.resolve(spec.program), *spec.args]

    def render(self, runnable: Runnable) -> str:
        pipeline = _as_pipeline(runnable)
        return " | ".join(spec.render(self.resolve(spec.program)) for spec in pipeline.commands)

    def run(self, runnable: Runnable) -> None:
        """Execute every stage; raise ExecError if any stage fails."""
        pipeline = _as_pipeline(runnable)
        if not pipeline.commands:
            raise ExecError("empty pipeline")
        rendered = self.render(pipeline)
        if self.dry_run:
            logger.info(f"[dry-run] {rendered}")
            return
        logger.debug(f"exec: {rendered}")
        if len(pipeline) == 1:
            self._run_single(pipeline.commands[0], rendered)
        else:
            self._run_chain(pipeline, rendered)

    def try_run(self, runnable: Runnable) -> bool:
        """Execute and report success instead of raising."""
        try:
            self.run(runnable)
            return True
        except ExecError as e:
            logger.debug(f"ignored failure: {e}")
            return False

    def run_capture(self, runnable: Runnable) -> str:
        """Execute a single read-only command and return its stdout.

        Runs in dry-run mode too; callers only use it for queries.
        """
        pipeline = _as_pipeline(runnable)
        if len(pipeline) != 1:
            raise ExecError(f"capture only works with single command, got {len(pipeline)}")
        spec = pipeline.commands[0]
        rendered = self.render(pipeline)
        logger.debug(f"capture: {rendered}")
        try:
            result = subprocess.run(
                self._argv(spec),
                stdin=_stream(spec.stdin),
                capture_output=True,
                text=True,
                env=_child_env(spec),
            )
        except OSError as e:
            raise ExecError(f"failed to spawn: {rendered}: {e}", command=rendered) from e
        if result.returncode != 0:
            raise self._failure(rendered, result.returncode, result.stderr)
        return result.stdout

    def _run_single(self, spec: CommandSpec, rendered: str) -> None:
        try:
            result = subprocess.run(
                self._argv(spec),
                stdin=_stream(spec.stdin),
                stdout=_stream(spec.stdout),
                stderr=_stream(spec.stderr),
                text=True,
                env=_child_env(spec),
            )
        except OSError as e:
            raise ExecError(f"failed to spawn: {rendered}: {e}", command=rendered) from e
        if result.returncode != 0:
            raise self._failure(rendered, result.returncode, result.stderr)

    def _run_chain(self, pipeline: Pipeline, rendered: str) -> None:
        procs: list[subprocess.Popen] = []
        upstream = None
        last_index = len(pipeline) - 1
        try:
            for index, spec in enumerate(pipeline.commands):
                stdin = upstream if index > 0 else _stream(spec.stdin)
                stdout = subprocess.PIPE if index < last_index else _stream(spec.stdout)
                proc = subprocess.Popen(
                    self._argv(spec),
                    stdin=stdin,
                    stdout=stdout,
                    stderr=_stream(spec.stderr),
                    env=_child_env(spec),
                )
                if upstream is not None:
                    # the child holds its own copy; closing ours lets SIGPIPE propagate
                    upstream.close()
                upstream = proc.stdout if index < last_index else None
                procs.append(proc)
        except OSError as e:
            for proc in procs:
                proc.kill()
                proc.wait()
            raise ExecError(f"failed to spawn: {rendered}: {e}", command=rendered) from e

        _, last_err = procs[-1].communicate()
        failures = []
        for spec, proc in zip(pipeline.commands, procs):
            err = last_err if proc is procs[-1] else (proc.stderr.read() if proc.stderr else None)
            returncode = proc.wait()
            if returncode != 0:
                failures.append((spec, returncode, err))
        if failures:
            spec, returncode, err = failures[0]
            if isinstance(err, bytes):
                err = err.decode(errors="replace")
            raise self._failure(rendered, returncode, err, stage=spec.program)

    @staticmethod
    def _failure(rendered: str, returncode: int, stderr: str | None,
                 stage: str | None = None) -> ExecError:
        where = f" in stage '{stage}'" if stage else ""
        message = f"command failed with exit code {returncode}{where}: {rendered}"
        detail = (stderr or "").strip()
        if detail:
            message = f"{message}: {detail}"
        return ExecError(message, command=rendered, returncode=returncode, stderr=stderr)
