"""
Loopback OAuth CLI Commands

Runs the authorization code flow from a terminal: opens the browser,
waits for the redirect on a local port and prints the resulting token.
"""

import json
import sys
from typing import Optional, Tuple

import click

from loopback_oauth._logging import setup_logging, verbose_logger
from loopback_oauth.code_exchange import authorization_code_handler, build_authorization_url
from loopback_oauth.exceptions import LoopbackOAuthError
from loopback_oauth.exchanger import OAuthTokenExchanger, build_callback_url
from loopback_oauth.settings import ExchangerSettings


def _load_settings() -> ExchangerSettings:
    settings = ExchangerSettings.from_env()
    errors = settings.validate()
    if errors:
        for error in errors:
            click.echo(f"❌ {error}", err=True)
        sys.exit(1)
    verbose_logger.debug(f"Loaded settings: {settings.to_dict()}")
    return settings


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """Loopback OAuth 2.0 authorization code flow."""
    setup_logging(verbose)


@cli.command("callback-url")
@click.option("--port", type=click.IntRange(0, 65535), help="Listener port (default: 3000)")
@click.option("--path", "listener_path", help="Listener path (default: /callback)")
def callback_url(port: Optional[int], listener_path: Optional[str]):
    """Print the redirect URI to register with the authorization server."""
    settings = _load_settings()
    port = settings.port if port is None else port
    listener_path = settings.path if listener_path is None else listener_path
    click.echo(build_callback_url(port, listener_path))


@cli.command()
@click.option("--authorize-url", required=True, help="Authorization endpoint URL")
@click.option("--token-url", required=True, help="Token endpoint URL")
@click.option("--client-id", required=True, envvar="LOOPBACK_OAUTH_CLIENT_ID", help="OAuth client ID")
@click.option(
    "--client-secret",
    envvar="LOOPBACK_OAUTH_CLIENT_SECRET",
    help="OAuth client secret (confidential clients only)",
)
@click.option("--scope", "scopes", multiple=True, help="OAuth scope (repeatable)")
@click.option("--port", type=click.IntRange(0, 65535), help="Listener port (default: 3000)")
@click.option("--path", "listener_path", help="Listener path (default: /callback)")
@click.option("--host", help="Listener bind address (default: all interfaces)")
@click.option("--timeout", type=float, help="Seconds to wait for the callback (default: forever)")
@click.option("--no-browser", is_flag=True, help="Don't automatically open browser")
def login(
    authorize_url: str,
    token_url: str,
    client_id: str,
    client_secret: Optional[str],
    scopes: Tuple[str, ...],
    port: Optional[int],
    listener_path: Optional[str],
    host: Optional[str],
    timeout: Optional[float],
    no_browser: bool,
):
    """
    Run the authorization code flow and print the token as JSON.

    The redirect URI sent to the authorization server is the local
    listener's callback URL.
    """
    settings = _load_settings()

    exchanger_kwargs = dict(
        listener_port=settings.port if port is None else port,
        listener_path=settings.path if listener_path is None else listener_path,
        listener_host=settings.host if host is None else host,
        open_browser=settings.open_browser and not no_browser,
    )
    redirect_uri = build_callback_url(
        exchanger_kwargs["listener_port"], exchanger_kwargs["listener_path"]
    )

    auth_url = build_authorization_url(
        authorize_url,
        client_id=client_id,
        redirect_uri=redirect_uri,
        scopes=list(scopes),
    )
    handler = authorization_code_handler(
        token_url,
        client_id=client_id,
        redirect_uri=redirect_uri,
        client_secret=client_secret,
    )
    exchanger = OAuthTokenExchanger(auth_url, handler, **exchanger_kwargs)

    click.echo("🔐 Starting OAuth authentication...", err=True)
    if not exchanger.open_browser:
        click.echo("\n🔗 Please visit this URL to authenticate:", err=True)
        click.echo(f"   {auth_url}", err=True)
    click.echo(f"\n⏳ Waiting for redirect on {redirect_uri}", err=True)

    try:
        token = exchanger.token_exchange(
            timeout=settings.timeout if timeout is None else timeout
        )
    except LoopbackOAuthError as e:
        verbose_logger.debug(f"Login failed: {e!r}")
        click.echo(f"❌ Authentication failed: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        verbose_logger.debug(f"Login failed unexpectedly: {e!r}")
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    click.echo("✅ Authentication successful!", err=True)
    click.echo(json.dumps(token.to_dict(), indent=2))


def main():
    cli()


if __name__ == "__main__":
    main()
