import click

from . import db
from . import words
from .errors import VocabError


@click.group()
def cli() -> None:
    """Manage the vocabulary practice word bank."""


def _fail(error: VocabError) -> click.ClickException:
    return click.ClickException(f"{error.message} ({error.code})")


@cli.command("init-db")
def init_db() -> None:
    """Initialize the vocabulary practice database."""
    db.init_db()
    click.echo("Database initialized.")


@cli.command("seed")
def seed() -> None:
    """Load the built-in word bank, skipping meanings that already exist."""
    db.init_db()
    created = db.seed_words()
    click.echo(f"{created} words added.")


@cli.command("import-csv")
@click.argument("csv_path", type=click.Path(exists=True, dir_okay=False))
def import_csv(csv_path: str) -> None:
    """Import words from a CSV file (japanese_meaning,primary_answer,alternative_answers,synonyms)."""
    with open(csv_path, "r", encoding="utf-8-sig") as f:
        content = f.read()
    try:
        result = words.import_words_csv(content)
    except VocabError as e:
        for message in e.details.get("errors", []):
            click.echo(f"  {message}", err=True)
        raise _fail(e)

    click.echo(f"Created: {result.created}, failed: {result.failed} ({result.status})")
    for error in result.errors:
        click.echo(f"  #{error.index} {error.japanese_meaning}: {error.error}")


@cli.command("add-word")
@click.argument("japanese_meaning")
@click.option("--answer", "answers", multiple=True, required=True,
              help="Accepted English answer; repeat for alternatives, the first one is primary")
@click.option("--synonym", "synonyms", multiple=True, help="Japanese synonym; repeatable")
def add_word(japanese_meaning: str, answers: tuple, synonyms: tuple) -> None:
    """Add a single word to the bank."""
    try:
        request = words.validate_word_request({
            "japanese_meaning": japanese_meaning,
            "answers": list(answers),
            "synonyms": list(synonyms) or None,
        })
        detail = words.create_word(request)
    except VocabError as e:
        raise _fail(e)
    click.echo(f"Word '{detail.japanese_meaning}' added with id {detail.id}.")


@cli.command("delete-word")
@click.argument("word_id", type=int)
def delete_word(word_id: int) -> None:
    """Soft-delete a word; its history is kept."""
    try:
        deleted = words.delete_word(word_id)
    except VocabError as e:
        raise _fail(e)
    click.echo(f"Word '{deleted.japanese_meaning}' ({deleted.id}) deleted.")


@cli.command("search-words")
@click.argument("search", required=False)
@click.option("--status", "is_active", type=click.Choice(["true", "false", "all"]), default="true",
              help="true: active only, false: deleted only, all: both")
@click.option("--limit", default=20, show_default=True, help="Page size (1-100)")
@click.option("--offset", default=0, show_default=True, help="Rows to skip")
def search_words(search: str, is_active: str, limit: int, offset: int) -> None:
    """List words whose Japanese meaning contains SEARCH."""
    try:
        result = words.search_words(search=search, is_active=is_active, limit=limit, offset=offset)
    except VocabError as e:
        raise _fail(e)

    for item in result.words:
        marker = "" if item.is_active else " [deleted]"
        click.echo(f"{item.id}\t{item.japanese_meaning}\t{', '.join(item.answers)}{marker}")
    page = result.pagination
    click.echo(f"-- {len(result.words)} of {page.total} (offset {page.offset}, pages {page.total_pages})")


if __name__ == "__main__":
    cli()
