"""CRM API CLI tool (crmctl)."""

from typing import List, Optional

import typer

app = typer.Typer(name="crmctl", help="CRM API CLI")
db_app = typer.Typer(help="Database management commands")
sessions_app = typer.Typer(help="Session record maintenance")
users_app = typer.Typer(help="User administration")
app.add_typer(db_app, name="db")
app.add_typer(sessions_app, name="sessions")
app.add_typer(users_app, name="users")


@db_app.command("create")
def db_create():
    """Create the MySQL database if it doesn't exist."""
    import pymysql
    from sqlalchemy.engine import make_url
    from crm_api.core.config import settings

    url = make_url(settings.MYSQL_URL)
    conn = pymysql.connect(
        host=url.host or "localhost",
        port=url.port or 3306,
        user=url.username,
        password=url.password or "",
    )
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
    import crm_api.models  # noqa: F401
    from crm_api.db.base import Base
    from crm_api.db.session import engine

    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Tables created")


@db_app.command("seed")
def db_seed():
    """Seed default branches and the super-admin."""
    from crm_api.db.session import SessionLocal
    from crm_api.db.seeds.seed_branches import seed_branches
    from crm_api.db.seeds.seed_super_admin import seed_super_admin

    db = SessionLocal()
    try:
        seed_branches(db)
        seed_super_admin(db)
    finally:
        db.close()
    typer.echo("✅ All seeds applied")


@sessions_app.command("sweep")
def sessions_sweep():
    """Delete expired session records now."""
    from crm_api.db.session import SessionLocal
    from crm_api.services.session_service import session_service

    db = SessionLocal()
    try:
        deleted = session_service.sweep_expired(db)
    finally:
        db.close()
    typer.echo(f"✅ Removed {deleted} expired sessions")


@users_app.command("create")
def users_create(
    email: str = typer.Argument(..., help="Login email"),
    full_name: str = typer.Argument(..., help="Display name"),
    role: str = typer.Option("Staff", help="Role name"),
    branch: Optional[str] = typer.Option(None, help="Branch name"),
    module: List[str] = typer.Option([], help="Module to grant (repeatable)"),
):
    """Create a user; the password is prompted for."""
    from crm_api.core.exceptions import CRMError
    from crm_api.db.session import SessionLocal
    from crm_api.services.auth_service import auth_service

    password = typer.prompt("Password", hide_input=True, confirmation_prompt=True)
    db = SessionLocal()
    try:
        user = auth_service.create_user(db, email, password, full_name, role, branch, module)
    except CRMError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=1)
    finally:
        db.close()
    typer.echo(f"✅ Created user {user.id} ({email})")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the API server."""
    import uvicorn
    uvicorn.run("crm_api.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
