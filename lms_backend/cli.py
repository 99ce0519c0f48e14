"""LMS Platform CLI tool (lmsctl)."""

import asyncio

import typer
from sqlalchemy.engine import make_url

from lms_backend.client import (
    AccountInactive, FileTokenStore, InvalidCredentials, SessionClient, SessionError,
)

app = typer.Typer(name="lmsctl", help="LMS Platform CLI")
db_app = typer.Typer(help="Database management commands")
auth_app = typer.Typer(help="Sign in to a running LMS server")
app.add_typer(db_app, name="db")
app.add_typer(auth_app, name="auth")

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_TOKEN_FILE = "~/.lmsctl/session.json"


def _mysql_connect(url):
    import pymysql

    return pymysql.connect(
        host=url.host or "localhost",
        port=url.port or 3306,
        user=url.username,
        password=url.password or "",
    )


@db_app.command("create")
def db_create():
    """Create the MySQL database if it doesn't exist."""
    from lms_backend.core.config import settings

    url = make_url(settings.DATABASE_URL)
    if not url.drivername.startswith("mysql"):
        typer.echo(f"ℹ️  Nothing to create for '{url.drivername}' databases")
        return

    conn = _mysql_connect(url)
    try:
        cursor = conn.cursor()
        cursor.execute(
            f"CREATE DATABASE IF NOT EXISTS `{url.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
        typer.echo(f"✅ Database '{url.database}' created (or already exists)")
    finally:
        conn.close()


@db_app.command("init")
def db_init():
    """Create all tables."""
    from lms_backend.db.base import Base
    from lms_backend.db.session import engine
    import lms_backend.models  # noqa: F401  registers tables on Base

    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Tables created")


@db_app.command("seed")
def db_seed(
    demo: bool = typer.Option(False, "--demo", help="Also create a demo admin -> tutor -> student chain"),
):
    """Seed roles and the super-admin."""
    from lms_backend.db.session import SessionLocal
    from lms_backend.db.seeds.seed_roles import seed_roles
    from lms_backend.db.seeds.seed_super_admin import seed_super_admin
    from lms_backend.db.seeds.seed_demo_users import seed_demo_users

    db = SessionLocal()
    try:
        seed_roles(db)
        seed_super_admin(db)
        if demo:
            seed_demo_users(db)
    finally:
        db.close()
    typer.echo("✅ All seeds applied")


@db_app.command("reset")
def db_reset():
    """Drop and recreate all tables (DANGER)."""
    confirm = typer.confirm("⚠️  This will DROP every table. Continue?")
    if not confirm:
        raise typer.Abort()

    from lms_backend.db.base import Base
    from lms_backend.db.session import engine
    import lms_backend.models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Database reset")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(True, help="Auto-reload"),
):
    """Start the FastAPI development server."""
    import uvicorn
    uvicorn.run("lms_backend.main:app", host=host, port=port, reload=reload)


# ---- auth ----

def _client(api_url: str, token_file: str) -> SessionClient:
    return SessionClient(api_url, store=FileTokenStore(token_file))


@auth_app.command("login")
def auth_login(
    email: str = typer.Argument(..., help="Account email"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
    api_url: str = typer.Option(DEFAULT_API_URL, envvar="LMS_API_URL"),
    token_file: str = typer.Option(DEFAULT_TOKEN_FILE, envvar="LMSCTL_TOKEN_FILE"),
):
    """Sign in and remember the session."""

    async def _run():
        async with _client(api_url, token_file) as client:
            return await client.login(email, password)

    try:
        principal = asyncio.run(_run())
    except (InvalidCredentials, AccountInactive) as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=1)
    except SessionError as e:
        typer.echo(f"❌ Login failed: {e.message}", err=True)
        raise typer.Exit(code=2)

    typer.echo(f"✅ Signed in as {principal.email} ({principal.role})")


@auth_app.command("whoami")
def auth_whoami(
    api_url: str = typer.Option(DEFAULT_API_URL, envvar="LMS_API_URL"),
    token_file: str = typer.Option(DEFAULT_TOKEN_FILE, envvar="LMSCTL_TOKEN_FILE"),
):
    """Show the signed-in user, refreshing the session if needed."""

    async def _run():
        async with _client(api_url, token_file) as client:
            return await client.bootstrap()

    try:
        principal = asyncio.run(_run())
    except SessionError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=2)

    if principal is None:
        typer.echo("Not signed in")
        raise typer.Exit(code=1)
    typer.echo(f"{principal.name} <{principal.email}> [{principal.role}]")


@auth_app.command("logout")
def auth_logout(
    api_url: str = typer.Option(DEFAULT_API_URL, envvar="LMS_API_URL"),
    token_file: str = typer.Option(DEFAULT_TOKEN_FILE, envvar="LMSCTL_TOKEN_FILE"),
):
    """Sign out and forget the stored session."""

    async def _run():
        async with _client(api_url, token_file) as client:
            await client.logout()

    asyncio.run(_run())
    typer.echo("✅ Signed out")


if __name__ == "__main__":
    app()
