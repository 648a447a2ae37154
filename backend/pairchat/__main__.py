"""pairchat command line: ``python -m pairchat [COMMAND]``.

Without a command the server is started, same as ``serve``.

Commands:
  serve                 Run the API and WebSocket server with uvicorn
  create-user USERNAME  Add a user to the directory and print a token
  issue-token USER_ID   Print a fresh token for an existing user

DuckDB holds a file lock on its database, so ``create-user`` and
``issue-token`` must run while the server is stopped (or against another
settings file).
"""
from typing import Optional

import click
import uvicorn

from pairchat.auth.service import TokenService
from pairchat.config import AppSettings, get_config
from pairchat.messages.service import MessageStore
from pairchat.users.service import DuplicateUsername, UserDirectory


def _token_service(config: AppSettings) -> TokenService:
    return TokenService(
        secret_key=config.secrets.jwt.secret_key,
        algorithm=config.secrets.jwt.algorithm,
        expire_minutes=config.auth.token_expire_minutes,
    )


def _open_directory(config: AppSettings):
    store = MessageStore(db_path=config.storage.messages_db_path)
    return store, UserDirectory(store, db_path=config.storage.users_db_path)


@click.group(invoke_without_command=True)
@click.version_option(version="0.1.0", prog_name="pairchat")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """pairchat management commands."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(serve)


@cli.command()
def serve() -> None:
    """Run the server with the configured host and port."""
    config = get_config()
    uvicorn.run(
        "pairchat.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
        log_level=config.logging.level.lower(),
    )


@cli.command(name="create-user")
@click.argument("username")
@click.option("--display-name", default="", help="Shown in rosters (default: the username)")
def create_user(username: str, display_name: str) -> None:
    """Add USERNAME to the directory and print its id and a bearer token."""
    config = get_config()
    store, directory = _open_directory(config)
    try:
        user = directory.create_user(username, display_name)
    except DuplicateUsername:
        raise click.ClickException(f"username {username!r} is already taken")
    finally:
        directory.close()
        store.close()

    click.echo(f"user_id: {user.userId}")
    click.echo(f"token: {_token_service(config).issue(user.userId)}")


@cli.command(name="issue-token")
@click.argument("user_id")
@click.option("--expires-minutes", type=int, default=None, help="Token lifetime override")
def issue_token(user_id: str, expires_minutes: Optional[int]) -> None:
    """Print a new bearer token for an existing USER_ID."""
    config = get_config()
    store, directory = _open_directory(config)
    try:
        user = directory.get_user(user_id)
    finally:
        directory.close()
        store.close()
    if user is None:
        raise click.ClickException(f"no user with id {user_id!r}")

    tokens = _token_service(config)
    if expires_minutes is not None:
        tokens.expire_minutes = expires_minutes
    click.echo(tokens.issue(user.userId))


def main() -> None:
    cli(prog_name="pairchat")


if __name__ == "__main__":
    main()
