"""Completion command for book-tracker."""

from enum import Enum

import typer
from click.shell_completion import BashComplete, FishComplete, ShellComplete, ZshComplete

completion_app = typer.Typer(help="Generate shell completion scripts.")

COMPLETION_CLASSES: dict[str, type[ShellComplete]] = {
    "bash": BashComplete,
    "zsh": ZshComplete,
    "fish": FishComplete,
}


class Shell(str, Enum):
    """Supported shell types for completion."""

    bash = "bash"
    zsh = "zsh"
    fish = "fish"


@completion_app.command(name="generate")
def generate_completion(
    shell: Shell = typer.Argument(..., help="Shell type (bash, zsh, fish)"),
) -> None:
    """Generate shell completion script.

    \b
    # Bash (add to ~/.bashrc):
    eval "$(book-tracker completion generate bash)"

    \b
    # Zsh (add to ~/.zshrc):
    eval "$(book-tracker completion generate zsh)"

    \b
    # Fish:
    book-tracker completion generate fish > ~/.config/fish/completions/book-tracker.fish
    """
    from book_tracker.cli import app

    completer = COMPLETION_CLASSES[shell.value](
        cli=typer.main.get_command(app),
        ctx_args={},
        prog_name="book-tracker",
        complete_var="_BOOK_TRACKER_COMPLETE",
    )
    typer.echo(completer.source())
