import click
from catalog.sa.database import Database

@click.group()
def db():
    """Database commands"""
    pass

@db.command()
def init():
    """Create the catalog tables if they don't exist"""
    database = Database()
    database.init_db()
    click.echo(click.style(f"Initialized database at {database.connection_string}", fg='green'))
