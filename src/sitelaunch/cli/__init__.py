"""Command-line interface for sitelaunch.

Commands:
- launch: Publish a project to one of its sites
- sites: List the sites a project declares
- login: Request an API key through the browser
- discover: Show a service's protocol metadata
"""

from __future__ import annotations

import click

from sitelaunch.cli.config import configure_logging, get_api_key, get_config_dir, load_config
from sitelaunch.cli.launch import launch, sites
from sitelaunch.cli.login import discover, login


@click.group()
@click.version_option(package_name="sitelaunch")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs.")
def cli(verbose: bool) -> None:
    """sitelaunch - publish a directory to a web host."""
    configure_logging(verbose)


# Launch commands
cli.add_command(launch)
cli.add_command(sites)

# Service commands
cli.add_command(login)
cli.add_command(discover)

__all__ = ["cli", "get_api_key", "get_config_dir", "load_config"]
