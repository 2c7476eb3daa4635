"""Entry point for CloudForge CLI."""

import logging
import sys
from pathlib import Path
from typing import Optional


def setup_logging(config) -> None:
    """Log to a file; the TUI owns the terminal."""
    log_file = Path(config.logging.file).expanduser()
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file)
    except OSError:
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(config.logging.level)


def print_packages(config) -> int:
    from rich.console import Console
    from rich.table import Table

    from cloudforge.packages import CATEGORY_ORDER, PackageDiscoveryError, discover

    console = Console()
    try:
        registry = discover(config.paths.scripts_path)
    except PackageDiscoveryError as e:
        console.print(f"[bold red]Package discovery failed:[/bold red] {e}")
        return 1

    table = Table(title=f"Packages ({len(registry)})")
    table.add_column("Name", style="bold")
    table.add_column("Category")
    table.add_column("Description", style="dim")
    table.add_column("Repository")
    for cat in CATEGORY_ORDER:
        for pkg in registry.by_category.get(cat, []):
            table.add_row(pkg.name, cat.value, pkg.description, pkg.github_repo)
    console.print(table)
    return 0


def parse_args(argv: list[str]) -> tuple[str, Optional[Path]]:
    """Return ``(command, config_path)``; command is "" for the TUI."""
    command = ""
    config_path = None
    args = list(argv)
    while args:
        arg = args.pop(0)
        if arg == "--config":
            if not args:
                raise SystemExit("--config requires a path")
            config_path = Path(args.pop(0)).expanduser()
        elif arg.startswith("--config="):
            config_path = Path(arg.split("=", 1)[1]).expanduser()
        elif arg in ("packages", "version", "--version") and not command:
            command = "version" if arg == "--version" else arg
        else:
            raise SystemExit(f"Unknown argument: {arg}\nUsage: cloudforge [--config PATH] [packages|version]")
    return command, config_path


def main():
    """Main entry point."""
    command, config_path = parse_args(sys.argv[1:])

    if command == "version":
        from cloudforge import __version__
        print(f"cloudforge {__version__}")
        return

    from cloudforge.config import Config, ConfigError

    try:
        config = Config.load(config_path)
    except ConfigError as e:
        from rich.console import Console
        console = Console()
        console.print(f"\n[bold red]Configuration Error:[/bold red] {e}")
        console.print(
            "\n[yellow]Fix the file or remove it to use the defaults.[/yellow]"
            "\nSearched: [bold]~/.config/cloudforge/config.yaml[/bold], [bold]config/config.yaml[/bold]"
        )
        sys.exit(1)

    setup_logging(config)

    if command == "packages":
        sys.exit(print_packages(config))

    # Launch the TUI app
    from cloudforge.app import CloudForgeApp
    app = CloudForgeApp(config=config)
    app.run()


if __name__ == "__main__":
    main()
