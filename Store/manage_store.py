# Store/manage_store.py
import typer
from tabulate import tabulate

from Auth.users import UserService
from Entities.admissions import AdmissionService
from Store.database import ERP_WORKBOOK, get_engine

cli = typer.Typer(help="College ERP spreadsheet administration")

SAMPLE_USERS = [
    {"username": "staff1", "email": "staff@college.edu", "display_name": "Staff Member",
     "role": "staff", "password": "password"},
    {"username": "warden1", "email": "warden@college.edu", "display_name": "Hostel Warden",
     "role": "hostel_warden", "password": "password"},
    {"username": "student1", "email": "student@college.edu", "display_name": "John Doe",
     "role": "student", "password": "password"},
]

SAMPLE_ADMISSION = {
    "first_name": "Jane", "last_name": "Smith", "email": "jane.smith@example.com",
    "phone": "+1234567890", "programme_applied": "Computer Science",
}


@cli.command()
def provision(
    reset: bool = typer.Option(False, "--reset", help="Wipe existing sheets back to their headers"),
):
    """Create every ERP sheet with its header row."""
    if reset:
        typer.confirm(f"This deletes ALL rows in {ERP_WORKBOOK}. Continue?", abort=True)
    touched = get_engine().provision(reset=reset)
    verb = "Reset/created" if reset else "Created"
    typer.echo(f"✅ {verb} {len(touched)} sheet(s): {', '.join(touched) or '-'}")


@cli.command()
def seed(
    admin_email: str = typer.Option("admin@college.edu"),
    admin_password: str = typer.Option(..., prompt=True, hide_input=True),
    samples: bool = typer.Option(False, help="Also add sample staff/warden/student users and an admission"),
):
    """Create the administrator account (and optionally sample data)."""
    store = get_engine()
    store.provision(reset=False)
    users = UserService(store)

    result = users.create_user({"username": "admin", "email": admin_email, "password": admin_password,
                                "role": "admin", "display_name": "System Administrator"})
    typer.echo(f"✅ Admin {admin_email}" if result["success"] else f"❌ Admin: {result['error']}")

    if samples:
        for data in SAMPLE_USERS:
            result = users.create_user(data)
            typer.echo(f"  {'✅' if result['success'] else '❌'} {data['username']}")
        result = AdmissionService(store).create(SAMPLE_ADMISSION)
        typer.echo(f"  {'✅' if result['success'] else '❌'} sample admission")


@cli.command()
def stats():
    """Row counts per sheet."""
    summary = get_engine().stats()
    rows = sorted(summary["sheets"].items())
    typer.echo(tabulate(rows, headers=["sheet", "rows"]))
    typer.echo(f"\nTotal records: {summary['total_records']}")


if __name__ == "__main__":
    cli()
