#!/usr/bin/env python3
import json
import logging

import click

from phbsparql.api import dbpedia, importer, ontology
from phbsparql.api.dbpedia import LANGUAGES
from phbsparql.api.engine import (
    ValidationError,
    WriteForbiddenError,
    engine_from_settings,
    handle_request,
)
from phbsparql.api.mappings import MappingsError, load_mappings, save_mappings
from phbsparql.api.persistence import PersistenceError
from phbsparql.api.query import QueryError
from phbsparql.api.search import federated_search
from phbsparql.config import load_settings
from phbsparql.extensions.fuseki import FusekiClient, FusekiError

# Errors shown to the user as a one-line message instead of a traceback
_USER_ERRORS = (
    ValidationError,
    WriteForbiddenError,
    PersistenceError,
    QueryError,
    ontology.OntologyImportError,
    FusekiError,
    ValueError,
)


class _EchoHandler(logging.Handler):
    def emit(self, record):
        click.echo(self.format(record), err=True)


def _enable_debug_logging():
    package_logger = logging.getLogger("phbsparql")
    package_logger.setLevel(logging.DEBUG)
    if not any(isinstance(h, _EchoHandler) for h in package_logger.handlers):
        handler = _EchoHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        package_logger.addHandler(handler)


def _executor(ctx, backend):
    settings = ctx.obj["settings"]
    backend = backend or settings.backend
    if backend == "fuseki":
        return FusekiClient(settings.fuseki, verbose=ctx.obj["verbose"])
    return engine_from_settings(settings)


def _echo_json(payload):
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


backend_option = click.option(
    "--backend",
    type=click.Choice(["local", "fuseki"]),
    help="Store to use (default: PHB_BACKEND or 'local')",
)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output, including HTTP requests")
@click.option("--env-file", type=click.Path(dir_okay=False), help="Read settings from this .env file")
@click.pass_context
def app(ctx, verbose, env_file):
    """Bolivian historical figures SPARQL CLI"""
    if verbose:
        _enable_debug_logging()
    try:
        settings = load_settings(env_file)
    except ValueError as e:
        raise click.ClickException(str(e))
    ctx.obj = {"settings": settings, "verbose": verbose}


@app.command()
@click.argument("text", required=False)
@click.option(
    "--file",
    "query_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Read the query from a file",
)
@click.option("--persons", is_flag=True, help="Print the SELECT results as historical figures")
@click.option("--language", type=click.Choice(["es", "en"]), default="es", show_default=True)
@backend_option
@click.pass_context
def query(ctx, text, query_file, persons, language, backend):
    """
    Run a SPARQL query (INSERT DATA, DELETE WHERE or SELECT) and print the JSON result.

    With --persons, each result row is printed as a historical figure instead.

    Exits with status 1 if the query fails.
    """
    if query_file:
        if text:
            raise click.UsageError("Pass the query either as an argument or with --file, not both.")
        with open(query_file, "r", encoding="utf-8") as f:
            text = f.read()

    executor = _executor(ctx, backend)
    if persons:
        try:
            found = ontology.persons_from_query(executor, text or "", language)
        except _USER_ERRORS as e:
            raise click.ClickException(str(e))
        _echo_json([p.to_dict() for p in found])
        return

    if isinstance(executor, FusekiClient):
        try:
            payload = executor.execute(text or "")
        except (FusekiError, QueryError) as e:
            _echo_json({"error": str(e)})
            ctx.exit(1)
        _echo_json(payload)
        return

    status, payload = handle_request(executor, {"query": text})
    _echo_json(payload)
    if status != 200:
        ctx.exit(1)


@app.command()
@click.argument("term")
@click.option("--language", type=click.Choice(LANGUAGES), default="es", show_default=True)
@click.option("--endpoint", default="es", show_default=True, help="DBpedia endpoint: es, en or a URL")
@click.option("--limit", type=int, default=10, show_default=True)
@click.option("--no-details", is_flag=True, help="Skip the per-person DBpedia details lookup")
@click.option("--json-output", is_flag=True, help="Print the full JSON result")
@backend_option
@click.pass_context
def search(ctx, term, language, endpoint, limit, no_details, json_output, backend):
    """Search DBpedia and the local ontology for historical figures."""
    result = federated_search(
        term,
        language,
        executor=_executor(ctx, backend),
        endpoint=endpoint,
        limit=limit,
        with_details=not no_details,
    )
    if json_output:
        _echo_json(result)
        return

    for person in result["results"]:
        click.echo(f"[{person['source']}] {person['name']} <{person['uri']}>")
    failed = [name for name, ok in result["sources"].items() if not ok]
    if failed:
        click.echo(f"Sources unavailable: {', '.join(failed)}", err=True)
    click.echo(f"{len(result['results'])} result(s)")


@app.command()
@click.option("--json-output", is_flag=True, help="Print the figures as JSON")
@backend_option
@click.pass_context
def figures(ctx, json_output, backend):
    """List the historical figures stored in the ontology."""
    try:
        persons = ontology.list_historical_figures(_executor(ctx, backend))
    except _USER_ERRORS as e:
        raise click.ClickException(str(e))

    if json_output:
        _echo_json([p.to_dict() for p in persons])
        return
    for person in persons:
        click.echo(f"{person.id}\t{person.name}")


@app.command()
@click.argument("uri")
@backend_option
@click.pass_context
def describe(ctx, uri, backend):
    """Print every predicate/value pair of a resource."""
    try:
        pairs = ontology.describe(_executor(ctx, backend), uri)
    except _USER_ERRORS as e:
        raise click.ClickException(str(e))
    for pair in pairs:
        click.echo(f"{pair['predicate']}\t{pair['value']}")


@app.command("import")
@click.argument("term")
@click.option("--limit", type=int, default=20, show_default=True)
@click.option("--endpoint", default="es", show_default=True, help="DBpedia endpoint: es, en or a URL")
@backend_option
@click.pass_context
def import_(ctx, term, limit, endpoint, backend):
    """Import historical figures found on DBpedia into the ontology."""
    settings = ctx.obj["settings"]
    try:
        entities = importer.import_from_dbpedia(
            term, limit, _executor(ctx, backend), settings.history_path, endpoint=endpoint
        )
    except _USER_ERRORS as e:
        raise click.ClickException(str(e))
    except Exception as e:
        raise click.ClickException(f"Import failed: {e}")
    click.echo(f"Imported {len(entities)} figure(s)")


@app.command()
@click.option("--force", is_flag=True, help="Clear without confirmation prompt")
@backend_option
@click.pass_context
def clear(ctx, force, backend):
    """Delete every statement from the ontology."""
    if not force:
        click.confirm("This removes every statement from the ontology. Continue?", abort=True)
    try:
        payload = ontology.clear_ontology(_executor(ctx, backend))
    except _USER_ERRORS as e:
        raise click.ClickException(str(e))
    removed = payload.get("removed")
    click.echo("Ontology cleared" + (f" ({removed} statements removed)" if removed is not None else ""))


@app.command()
@click.pass_context
def history(ctx):
    """Print the DBpedia import history."""
    _echo_json(importer.read_history(ctx.obj["settings"].history_path))


@app.command()
@click.option("--language", type=click.Choice(["es", "en"]), default="es", show_default=True)
def categories(language):
    """List the DBpedia categories that can be imported."""
    _echo_json(dbpedia.list_categories(language))


@app.group()
def mappings():
    """DBpedia-to-ontology mapping commands"""
    pass


@mappings.command("show")
@click.pass_context
def mappings_show(ctx):
    """Print the saved mappings."""
    try:
        _echo_json(load_mappings(ctx.obj["settings"].mappings_path))
    except MappingsError as e:
        raise click.ClickException(str(e))


@mappings.command("save")
@click.argument("mappings_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def mappings_save(ctx, mappings_file):
    """Replace the saved mappings with the JSON object in MAPPINGS_FILE."""
    try:
        with open(mappings_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except ValueError as e:
        raise click.ClickException(f"Invalid JSON in {mappings_file}: {e}")
    try:
        save_mappings(ctx.obj["settings"].mappings_path, data)
    except MappingsError as e:
        raise click.ClickException(str(e))


@app.group()
def fuseki():
    """Fuseki dataset commands"""
    pass


@fuseki.command("test")
@click.pass_context
def fuseki_test(ctx):
    """Check that the configured Fuseki dataset answers queries."""
    result = _executor(ctx, "fuseki").test_connection()
    click.echo(result["message"])
    if not result["success"]:
        ctx.exit(1)


@fuseki.command("stats")
@click.pass_context
def fuseki_stats(ctx):
    """Print triple/subject/predicate/object counts and named graphs."""
    try:
        _echo_json(_executor(ctx, "fuseki").stats())
    except FusekiError as e:
        raise click.ClickException(str(e))


@fuseki.command("upload")
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--graph", "graph_uri", help="Named graph to load into (default graph if omitted)")
@click.option("--content-type", default="text/turtle", show_default=True)
@click.pass_context
def fuseki_upload(ctx, data_file, graph_uri, content_type):
    """Upload an RDF file to the Fuseki dataset."""
    with open(data_file, "r", encoding="utf-8") as f:
        data = f.read()
    try:
        _executor(ctx, "fuseki").upload(data, graph_uri, content_type)
    except FusekiError as e:
        raise click.ClickException(str(e))


@app.command()
@click.argument("shell", type=click.Choice(["bash", "zsh", "fish", "powershell"]), required=False, default="bash")
def completion(shell):
    click.echo(f"Run: eval \"$(_PHBSPARQL_COMPLETE=source_{shell} python -m phbsparql)\"")


if __name__ == "__main__":
    app()
