"""Entry point: deploy a directory to a Netlify site from the command line."""

import logging
import sys
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import click

from netlifydeploy.api.client import NetlifyAPI
from netlifydeploy.auth.credentials import CredentialsStore
from netlifydeploy.config import load_settings, validate_settings
from netlifydeploy.deploy.engine import DeployEngine
from netlifydeploy.errors import ConfigError, CredentialsError, NetlifyDeployError

log = logging.getLogger("netlifydeploy.main")

EXIT_CONFIG_ERROR = 2
EXIT_DEPLOY_ERROR = 3
EXIT_INTERRUPTED = 130


def _setup_logging(verbose: bool = False, quiet: bool = False, log_file: Optional[Path] = None) -> None:
    """Configure logging to stderr (INFO, DEBUG with -v, WARNING with -q) and optionally a file (DEBUG)."""
    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    root = logging.getLogger("netlifydeploy")
    root.setLevel(logging.DEBUG)
    root.handlers.clear()
    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO)
    ch.setFormatter(fmt)
    root.addHandler(ch)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(fmt)
        root.addHandler(fh)
        root.info("Logging to %s", log_file)


@contextmanager
def handle_deploy_errors() -> Generator[None, None, None]:
    """
    Map failures to exit codes: 2 configuration error, 3 deploy/API error or
    anything unexpected, 130 interrupted.
    """
    try:
        yield
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        click.secho("Error: Configuration error", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    except NetlifyDeployError as e:
        log.error("Deploy failed: %s", e)
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(EXIT_DEPLOY_ERROR)
    except KeyboardInterrupt:
        log.warning("Interrupted; deploy cancelled")
        click.secho("Interrupted", fg="yellow", err=True)
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        log.exception("Unexpected error: %s", e)
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(EXIT_DEPLOY_ERROR)


@click.command(name="netlify-deploy", context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--deployDir", "-d", "deploy_dir",
    default=None,
    help="Directory to be deployed to netlify [env NETLIFY_DIRECTORY; default ./public]",
)
@click.option(
    "--token", "-t",
    default=None,
    help="API token to connect to netlify [env NETLIFY_AUTH_TOKEN; falls back to the keyring]",
)
@click.option(
    "--siteName", "-s", "site_name",
    default=None,
    help="Site name to deploy to [env NETLIFY_SITE]",
)
@click.option(
    "--alias", "-a",
    default=None,
    help="Site alias (branch) to deploy to [env NETLIFY_ALIAS]",
)
@click.option(
    "--title",
    default=None,
    help="Title to label deploy as in logs [env NETLIFY_TITLE]",
)
@click.option(
    "--queueSize", "queue_size",
    type=int,
    default=None,
    help="Number of parallel upload processes to use [env NETLIFY_QUEUE_SIZE; default 5]",
)
@click.option(
    "--draft",
    type=click.BOOL,
    is_flag=False,
    flag_value=True,
    default=None,
    help="Should this be deployed as a draft? Accepts --draft, --draft=false [env NETLIFY_DRAFT; default true]",
)
@click.option("--no-draft", "no_draft", is_flag=True, help="Same as --draft=false")
@click.option(
    "--remember-token",
    is_flag=True,
    help="Save the token in the OS keyring after a successful deploy",
)
@click.option(
    "--forget-token",
    is_flag=True,
    help="Remove the token saved in the OS keyring and exit",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write a debug log to this file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Suppress progress output")
def deploy(
    deploy_dir: Optional[str],
    token: Optional[str],
    site_name: Optional[str],
    alias: Optional[str],
    title: Optional[str],
    queue_size: Optional[int],
    draft: Optional[bool],
    no_draft: bool,
    remember_token: bool,
    forget_token: bool,
    log_file: Optional[Path],
    verbose: bool,
    quiet: bool,
) -> None:
    """Deploy a directory to netlify.

    Every file is fingerprinted; only files netlify does not already have are
    uploaded. Flags override NETLIFY_* environment variables.

    Example:

        netlify-deploy -s my-site -d ./public --no-draft
    """
    _setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)
    creds = CredentialsStore()

    if forget_token:
        with handle_deploy_errors():
            creds.clear_token()
        if not quiet:
            click.echo("Removed stored token.")
        return

    if no_draft:
        if draft:
            raise click.UsageError("--draft and --no-draft are mutually exclusive")
        draft = False

    with handle_deploy_errors():
        settings = load_settings(
            directory=deploy_dir,
            auth_token=token,
            site=site_name,
            alias=alias,
            title=title,
            queue_size=queue_size,
            draft=draft,
        )
        auth_token = settings.auth_token or creds.get_token() or ""
        validate_settings(settings, token=auth_token)

        api = NetlifyAPI(auth_token, base_url=settings.api_url or None)
        engine = DeployEngine(
            api,
            settings.directory_path,
            settings.site,
            draft=settings.draft,
            branch=settings.alias,
            title=settings.title,
            queue_size=settings.queue_size,
            on_status=None if quiet else click.echo,
        )
        try:
            result = engine.run()
        except KeyboardInterrupt:
            engine.cancel()
            raise

        if remember_token and settings.auth_token:
            try:
                creds.set_token(settings.auth_token)
            except CredentialsError as e:
                # The deploy itself succeeded
                log.warning("%s", e)
                click.secho(f"Warning: {e}", fg="yellow", err=True)

        if not quiet:
            click.secho(
                f"Site is deployed - {result.deploy_url} "
                f"({result.uploaded} uploaded, {result.file_count} files)",
                fg="green",
            )


def main() -> None:
    """Run the netlify-deploy command line."""
    deploy(prog_name="netlify-deploy")


if __name__ == "__main__":
    main()
