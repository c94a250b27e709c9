from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from shipit.core.config import Config, config_path_for, load_config_or_default
from shipit.core.errors import ErrorCode
from shipit.core.result import Err
from shipit.output.console import ConsoleProtocol, RichConsole, Style

REPO_ENV_VAR = "SHIPIT_REPO"


@dataclass(frozen=True, slots=True)
class CLIContext:
    repo_root: Path
    config: Config
    console: ConsoleProtocol


def repo_root_from_env() -> Path:
    override = os.environ.get(REPO_ENV_VAR)
    return Path(override) if override else Path.cwd()


def build_context() -> CLIContext:
    console = RichConsole()
    repo_root = repo_root_from_env()

    loaded = load_config_or_default(config_path_for(repo_root))
    if isinstance(loaded, Err):
        console.error(loaded.error.message)
        if loaded.error.hint:
            console.print(f"hint: {loaded.error.hint}", Style.DIM)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(repo_root=repo_root, config=loaded.value, console=console)
