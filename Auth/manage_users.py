# Auth/manage_users.py
import getpass

import typer
from tabulate import tabulate

from Auth.users import USER_ROLES, UserService
from Store.database import get_engine, init_db

cli = typer.Typer(help="College ERP user management")


def _service() -> UserService:
    init_db()
    return UserService(get_engine())


@cli.command()
def add(
    username: str = typer.Argument(...),
    email: str = typer.Argument(...),
    role: str = typer.Option("staff", help=f"Role: {' | '.join(USER_ROLES)}"),
    display_name: str = typer.Option("", help="Defaults to the username"),
):
    """Add a new user."""
    pwd = getpass.getpass("Password: ")
    result = _service().create_user({
        "username": username, "email": email, "password": pwd,
        "role": role, "display_name": display_name,
    })
    if not result["success"]:
        typer.echo(f"❌ {result['error']}"); raise typer.Exit(1)
    typer.echo(f"✅ Created {result['user']['user_id']}")


@cli.command()
def passwd(user_id: str):
    """Reset a password (no old password needed)."""
    pwd = getpass.getpass("New password: ")
    result = _service().update_user(user_id, {"password": pwd})
    if not result["success"]:
        typer.echo(f"❌ {result['error']}"); raise typer.Exit(1)
    typer.echo("🔑 Changed")


@cli.command()
def delete(user_id: str):
    """Deactivate a user (soft delete)."""
    result = _service().delete_user(user_id)
    if not result["success"]:
        typer.echo(f"❌ {result['error']}"); raise typer.Exit(1)
    typer.echo("🗑️  Deactivated")


@cli.command(name="list")
def list_users(
    role: str = typer.Option("", help="Only this role"),
    show_inactive: bool = typer.Option(True, help="Include deactivated users"),
):
    """List users (id, username, email, role, active)."""
    filters = {"role": role or None}
    if not show_inactive:
        filters["active"] = True
    users = _service().get_all_users(filters)["users"]
    headers = ["user_id", "username", "email", "role", "active", "last_login"]
    rows = [[u.get(h, "") for h in headers] for u in users]
    typer.echo(tabulate(rows, headers=headers))


if __name__ == "__main__":
    cli()
