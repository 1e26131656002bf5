"""Service commands for the sitelaunch CLI.

Commands:
- login: Request an API key through the browser
- discover: Show a service's protocol metadata
"""

from __future__ import annotations

import sys

import click

from sitelaunch.cli.config import API_KEY_ENV, get_config_file
from sitelaunch.client.discovery import DiscoveryError, ProtocolDiscovery
from sitelaunch.client.keyrequest import KeyRequest, KeyRequester, KeyRequestError
from sitelaunch.core.cancel import CancellationToken, LaunchCancelled
from sitelaunch.core.config import DEFAULT_SERVICE

service_option = click.option(
    "--service",
    "-s",
    default=DEFAULT_SERVICE,
    show_default=True,
    help="Hosting service domain.",
)


@click.command()
@service_option
@click.option("--name", default="sitelaunch", show_default=True, help="Application name shown for approval.")
@click.option("--no-browser", is_flag=True, help="Print the approval URL without opening it.")
def login(service: str, name: str, no_browser: bool) -> None:
    """Request an API key for a hosting service.

    Opens the approval page and waits until the request is approved.
    """
    requester = KeyRequester(service)
    token = CancellationToken()

    def on_poll_start(request: KeyRequest) -> None:
        click.echo(f"Approve this request in your browser: {request.browser_url}")
        if request.request_id:
            click.echo(f"Request ID: {request.request_id}")
        if not no_browser:
            click.launch(request.browser_url)
        click.echo("Waiting for approval (Ctrl-C to cancel)...")

    try:
        key = requester.request_and_await_key(on_poll_start, application_name=name, cancel_token=token)
    except KeyboardInterrupt:
        token.cancel()
        click.echo("\nCancelled.", err=True)
        sys.exit(130)
    except LaunchCancelled:
        click.echo("Cancelled.", err=True)
        sys.exit(130)
    except KeyRequestError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo("\nAPI key approved:")
    click.echo(key)
    click.echo(f"\nExport it as {API_KEY_ENV} or add it under \"api_keys\" -> \"{service}\" in {get_config_file()}.")


@click.command()
@service_option
def discover(service: str) -> None:
    """Show the protocol metadata a hosting service advertises."""
    try:
        info = ProtocolDiscovery().discover(service)
    except DiscoveryError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Protocols: {', '.join(info.protocols)}")
    click.echo(f"API URL: {info.base_url}")
    if info.api_key_management_url:
        click.echo(f"API keys: {info.api_key_management_url}")
