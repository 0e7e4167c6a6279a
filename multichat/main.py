"""
Multichat - Main Entry Point

Terminal chat against one or several Ollama hosts, plus model
management across the configured hosts.

Usage:
    multichat chat [--single]
    multichat list [--parameters]
    multichat pull | delete | sync | unload

Environment Variables:
    MULTICHAT_CONFIG          - Hosts file (default: config.json)
    MULTICHAT_TIMEOUT         - HTTP read timeout in seconds (default: 300)
    MULTICHAT_CONNECT_TIMEOUT - HTTP connect timeout in seconds (default: 10)
    MULTICHAT_LOG_FILE        - Log file while chatting (default: debug.log)
    DEBUG                     - Enable debug logging
"""

import argparse
import asyncio
import logging
import sys
from typing import Dict, Optional

from rich.console import Console

from .app import ChatApp
from .config import ConfigError, config, load_hosts_file
from .management import (
    HostReport,
    delete_models,
    list_models,
    model_parameters,
    pull_models,
    sync_models,
    unload_models,
)
from .models import HostsFile
from .ollama_client import OllamaClient

logger = logging.getLogger(__name__)

console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(filename: Optional[str] = None):
    """Log to a file while the TUI owns the terminal, otherwise to stderr."""
    level = logging.DEBUG if config.debug else logging.INFO
    if filename:
        logging.basicConfig(level=level, format=LOG_FORMAT, filename=filename)
    else:
        logging.basicConfig(
            level=level,
            format=LOG_FORMAT,
            handlers=[logging.StreamHandler(sys.stderr)],
        )


def _print_reports(title: str, reports: Dict[str, HostReport]):
    console.print(f"[bold]{title}[/bold]")
    for name in sorted(reports):
        report = reports[name]
        console.print(f"{name}:")
        for model in report.done:
            console.print(f"  >>> {model}")
        for model in report.kept:
            console.print(f"  [dim]>>> {model} (kept)[/dim]")
        for err in report.errors:
            console.print(f"  [red]Error: {err}[/red]")


async def run_chat(hosts_file: HostsFile, single: bool):
    async with OllamaClient() as client:
        if not single and hosts_file.unload_on_start:
            await unload_models(client, hosts_file.hosts)
        await ChatApp(hosts_file, client, single=single).run()


async def run_list(hosts_file: HostsFile):
    async with OllamaClient() as client:
        listings = await list_models(client, hosts_file.hosts)

    for listing in listings:
        console.print(f"[bold]{listing.host}:[/bold]")
        if listing.error:
            console.print(f"  [red]Error: {listing.error}[/red]")
        for model in listing.models:
            if model in listing.loaded:
                console.print(f"  [green]>>> {model} (CURRENTLY LOADED)[/green]")
            else:
                console.print(f"  [cyan]>>> {model}[/cyan]")
        console.print()


async def run_parameters(hosts_file: HostsFile):
    async with OllamaClient() as client:
        listings = await model_parameters(client, hosts_file.hosts)

    for listing in listings:
        console.print(f"[bold]{listing.host}:[/bold]")
        if listing.error:
            console.print(f"  [red]Error: {listing.error}[/red]")
        for entry in listing.models:
            console.print(f"  [cyan]>>> {entry.model}[/cyan]")
            for key, value in entry.settings.items():
                console.print(f"      {key}: {value}")
        console.print()


async def run_management(hosts_file: HostsFile, action: str):
    async with OllamaClient() as client:
        if action == "pull":
            _print_reports("Pulled", await pull_models(client, hosts_file.hosts))
        elif action == "delete":
            _print_reports("Deleted", await delete_models(client, hosts_file.hosts))
        elif action == "unload":
            _print_reports("Unloaded", await unload_models(client, hosts_file.hosts))
        elif action == "sync":
            results = await sync_models(client, hosts_file.hosts)
            _print_reports("Deleted", results["delete"])
            _print_reports("Pulled", results["pull"])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="multichat",
        description="Chat with one or several Ollama hosts side by side",
    )
    parser.add_argument("--config", default=config.config_path, help="Hosts file (JSON)")
    sub = parser.add_subparsers(dest="command", required=True)

    chat = sub.add_parser("chat", help="Start an interactive chat session")
    mode = chat.add_mutually_exclusive_group()
    mode.add_argument("--single", dest="single", action="store_true", default=None,
                      help="One host at a time, models from the host catalogue")
    mode.add_argument("--multi", dest="single", action="store_false",
                      help="Several hosts side by side")
    chat.set_defaults(func=lambda hf, args: run_chat(
        hf, args.single if args.single is not None else not hf.multimodel))

    lst = sub.add_parser("list", help="List models on every host")
    lst.add_argument("--parameters", action="store_true",
                     help="Show sampling parameters of each installed model")
    lst.set_defaults(func=lambda hf, args: run_parameters(hf) if args.parameters else run_list(hf))

    for action, text in (
        ("pull", "Pull configured models onto every host"),
        ("delete", "Delete models not in the configuration"),
        ("sync", "Delete unconfigured models, then pull configured ones"),
        ("unload", "Unload all currently loaded models"),
    ):
        p = sub.add_parser(action, help=text)
        p.set_defaults(func=lambda hf, args, action=action: run_management(hf, action))

    return parser


def main(argv=None):
    """Run the multichat CLI."""
    args = build_parser().parse_args(argv)

    configure_logging(config.log_file if args.command == "chat" else None)

    try:
        hosts_file = load_hosts_file(args.config)
    except ConfigError as e:
        console.print(f"[red]Failed to start: {e}[/red]")
        sys.exit(1)

    logger.info(f"Loaded {len(hosts_file.hosts)} hosts from {args.config}")
    asyncio.run(args.func(hosts_file, args))


if __name__ == "__main__":
    main()
