# cli/main.py
import click
from .commands.westmanga import westmanga
from .commands.genre import genre
from .commands.db import db

@click.group()
def cli():
    """Manga Catalog Sync CLI"""
    pass

cli.add_command(westmanga)
cli.add_command(genre)
cli.add_command(db)

def main():
    """Entry point for the CLI"""
    cli()

if __name__ == '__main__':
    main()
