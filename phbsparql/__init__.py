"""Top-level package for the Bolivian historical figures SPARQL client.

Exposes the local SPARQL engine, the ontology service functions and the CLI
entrypoint so the package can be used as a library or via
``python -m phbsparql``.
"""

from phbsparql import cli
from phbsparql.api.engine import SparqlEngine, handle_request
from phbsparql.api.ontology import (
    import_entities,
    list_historical_figures,
    persons_from_query,
    search_historical_figures,
)

__version__ = "0.1.0"
__all__ = [
    "SparqlEngine",
    "handle_request",
    "import_entities",
    "list_historical_figures",
    "persons_from_query",
    "search_historical_figures",
]


def run():
    """Start the Click CLI application."""

    cli.app()
