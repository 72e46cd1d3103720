import click
from catalog.exceptions import RemoteUnavailable
from catalog.remote.westmanga_client import WestMangaClient
from catalog.sa.database import Database
from catalog.sa.repositories import GenreRepository

@click.group()
def genre():
    """Genre management commands"""
    pass

@genre.command(name="list")
@click.option('--query', default=None, help='Only genres whose name contains this text')
def list_genres(query: str):
    """List local genres with their manga counts"""
    db = Database()
    db.init_db()
    with db.get_db() as session:
        genres = GenreRepository(session).list_genres(query=query)
        rows = [(g.name, len(g.manga_genres)) for g in genres]

    if not rows:
        click.echo("\nNo genres found.")
        return
    click.echo("\nGenres:")
    for name, count in rows:
        click.echo(f" - {name} " + click.style(f"({count} manga)", fg='cyan'))

@genre.command(name="add")
@click.argument('name')
@click.option('--slug', default=None, help='Genre slug')
def add_genre(name: str, slug: str):
    """Add a genre to the local catalog

    NAME is the genre name; sync links manga to it by case-insensitive name.
    """
    db = Database()
    db.init_db()
    try:
        with db.get_db() as session:
            GenreRepository(session).create(name, slug=slug)
    except ValueError as e:
        click.echo(click.style(str(e), fg='yellow'), err=True)
        raise SystemExit(1)
    click.echo(click.style(f"Added genre '{name}'", fg='green'))

@genre.command(name="seed")
def seed_genres():
    """Import the remote genre names into the local genre table

    This is the only way genres come from WestManga; syncing manga never
    creates genres.
    """
    client = WestMangaClient()
    try:
        remote_genres = client.list_genres()
    except RemoteUnavailable as e:
        click.echo(click.style(f"Error fetching genres: {str(e)}", fg='red'), err=True)
        raise SystemExit(1)
    finally:
        client.close()

    db = Database()
    db.init_db()
    added = 0
    with db.get_db() as session:
        repo = GenreRepository(session)
        for remote_genre in remote_genres:
            if repo.get_by_name_ci(remote_genre.name):
                continue
            repo.create(remote_genre.name, slug=remote_genre.slug)
            added += 1

    click.echo(click.style("Added: ", fg='blue') + click.style(str(added), fg='green') +
              click.style(f" of {len(remote_genres)} remote genres", fg='blue'))
