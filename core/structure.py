#!/usr/bin/env python3
"""
TableCopy Structure Runner

Provisions destination structure by running externally configured commands
(for example an application's own schema migration tool) before rows are
copied. The destination profile name is exported to the commands through an
environment variable so they can pick the right connection.
"""

import logging
import os
import shlex
import subprocess
import time
from typing import Any, Dict, List, Optional

from core.errors import StructureCommandError

logger = logging.getLogger(__name__)

DEFAULT_ENV_VAR = 'TABLECOPY_CONNECTION'


def build_command(command: str, arguments: Optional[Dict[str, Any]] = None) -> List[str]:
    """Split a command line and append --key=value arguments"""
    argv = shlex.split(command)
    for key, value in (arguments or {}).items():
        if value is True:
            argv.append(f"--{key}")
        elif value is False or value is None:
            continue
        else:
            argv.append(f"--{key}={value}")
    return argv


class StructureRunner:
    """Runs the configured structure commands in order"""

    def __init__(self, commands: Dict[str, Dict[str, Any]], env_var: str = DEFAULT_ENV_VAR,
                 cwd: Optional[str] = None):
        self.commands = commands or {}
        self.env_var = env_var
        self.cwd = cwd

    def run(self, name: str) -> Dict[str, float]:
        """Run every command against destination profile `name`; returns seconds per command"""
        env = dict(os.environ)
        env[self.env_var] = name

        timings = {}
        for command_name, command_config in self.commands.items():
            if isinstance(command_config, str):
                command_config = {'command': command_config}
            command = command_config.get('command')
            if not command:
                raise StructureCommandError(f"Structure command {command_name} has no 'command'")
            arguments = command_config.get('arguments') or {}

            argv = build_command(command, arguments)
            logger.info(f"Run command ({command_name}) {command} {' '.join(argv[len(shlex.split(command)):])}")

            start = time.time()
            try:
                completed = subprocess.run(argv, env=env, cwd=self.cwd)
            except OSError as e:
                raise StructureCommandError(f"Cannot start {command_name}: {e}", command=command) from e
            elapsed = time.time() - start

            if completed.returncode != 0:
                raise StructureCommandError(
                    f"Command {command_name} exited with status {completed.returncode}",
                    command=command,
                    returncode=completed.returncode,
                )

            logger.info(f"Command {command_name} took {elapsed:.2f} s")
            timings[command_name] = elapsed

        return timings
