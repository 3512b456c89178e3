"""
Command line tools (erp-store / erp-users)
"""
import pytest
from typer.testing import CliRunner

from Auth import manage_users
from Store import manage_store
from Store.table import MemoryStore

runner = CliRunner()


@pytest.fixture
def engine(monkeypatch):
    store = MemoryStore()
    monkeypatch.setattr(manage_store, "get_engine", lambda: store)
    monkeypatch.setattr(manage_users, "get_engine", lambda: store)
    monkeypatch.setattr(manage_users, "init_db", lambda: store.provision(reset=False))
    return store


def test_provision_and_stats(engine):
    result = runner.invoke(manage_store.cli, ["provision"])
    assert result.exit_code == 0, result.output
    assert "Users" in result.output
    assert engine.table("AuditLog") is not None

    result = runner.invoke(manage_store.cli, ["stats"])
    assert result.exit_code == 0
    assert "Total records: 0" in result.output


def test_reset_asks_first(engine):
    engine.provision()
    engine.table("Config").append({"config_key": "k"})
    result = runner.invoke(manage_store.cli, ["provision", "--reset"], input="n\n")
    assert result.exit_code != 0
    assert len(engine.table("Config")) == 1


def test_seed_with_samples(engine):
    result = runner.invoke(manage_store.cli, ["seed", "--admin-password", "admin123", "--samples"])
    assert result.exit_code == 0, result.output
    assert {u["role"] for u in engine.table("Users").scan()} == {"admin", "staff", "hostel_warden", "student"}
    assert len(engine.table("Admissions")) == 1

    again = runner.invoke(manage_store.cli, ["seed", "--admin-password", "admin123"])
    assert "User with this email already exists" in again.output


def test_user_commands(engine, monkeypatch):
    monkeypatch.setattr(manage_users.getpass, "getpass", lambda prompt="": "pw")

    result = runner.invoke(manage_users.cli, ["add", "ann", "ann@college.edu", "--role", "staff"])
    assert result.exit_code == 0, result.output
    user_id = engine.table("Users").find("email", "ann@college.edu").record["user_id"]

    duplicate = runner.invoke(manage_users.cli, ["add", "ann2", "ann@college.edu"])
    assert duplicate.exit_code == 1

    assert runner.invoke(manage_users.cli, ["passwd", user_id]).exit_code == 0
    assert runner.invoke(manage_users.cli, ["delete", user_id]).exit_code == 0
    assert engine.table("Users").find("user_id", user_id).record["active"] is False

    listed = runner.invoke(manage_users.cli, ["list", "--no-show-inactive"])
    assert "ann@college.edu" not in listed.output
    listed = runner.invoke(manage_users.cli, ["list"])
    assert "ann@college.edu" in listed.output

    assert runner.invoke(manage_users.cli, ["delete", "USR-none"]).exit_code == 1
