import logging
from typing import Any, Mapping, Tuple

from phbsparql.api import query as q
from phbsparql.api import turtle
from phbsparql.api.persistence import FileGateway, NotFoundError, PersistenceError
from phbsparql.api.store import TripleStore

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised if the request carries no usable query"""


class WriteForbiddenError(Exception):
    """Raised if a write is attempted while the engine is read-only"""


class SparqlEngine:
    """
    Runs queries against the Turtle document behind ``gateway``.

    Nothing is cached between calls: each query loads the document into a
    fresh TripleStore, and writes serialize the whole store back. Writes
    hold the gateway's transaction lock for the full read-modify-write cycle.
    """

    def __init__(self, gateway: FileGateway, read_only: bool = False):
        self.gateway = gateway
        self.read_only = read_only

    def load_store(self) -> TripleStore:
        """Parse the current document into a new store (bootstrapping a missing file)."""
        try:
            text = self.gateway.read()
        except NotFoundError:
            text = self._bootstrap()
        try:
            store = TripleStore(turtle.parse(text))
        except turtle.ParseError as e:
            logger.error("Dataset file is not valid Turtle: %s", e)
            raise PersistenceError("The dataset file could not be parsed") from e
        logger.debug("Loaded %d statements", len(store))
        return store

    def _bootstrap(self) -> str:
        if self.read_only:
            return turtle.BOOTSTRAP_DOCUMENT
        # another writer may have created the file since the unlocked read
        with self.gateway.transaction():
            try:
                return self.gateway.read()
            except NotFoundError:
                self.gateway.write(turtle.BOOTSTRAP_DOCUMENT)
                logger.info("Created dataset file with default prefixes")
                return turtle.BOOTSTRAP_DOCUMENT

    def execute(self, query: str) -> dict:
        """
        Run a query and return its JSON payload.

        Returns:
        - SELECT: a SPARQL-JSON results document
        - INSERT DATA: {"success": True}
        - DELETE WHERE: {"success": True, "removed": <count>}
        """
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("A SPARQL query is required")

        kind = q.classify(query)
        logger.debug("Query kind: %s", kind.value)
        if kind in (q.QueryKind.INSERT, q.QueryKind.DELETE) and self.read_only:
            raise WriteForbiddenError(
                "Writing to the local ontology is not allowed in read-only mode"
            )

        parsed = q.parse_query(query)

        if kind is q.QueryKind.SELECT:
            store = self.load_store()
            return q.evaluate_select(parsed, store).to_json()

        with self.gateway.transaction():
            store = self.load_store()
            if kind is q.QueryKind.INSERT:
                q.apply_insert(parsed, store)
                payload = {"success": True}
            else:
                payload = {"success": True, "removed": q.apply_delete(parsed, store)}
            self.gateway.write(turtle.serialize(store))
        logger.info("Dataset updated (%d statements)", len(store))
        return payload


_ERROR_STATUS = (
    (ValidationError, 400),
    (q.UnsupportedQueryError, 400),
    (q.InvalidSelectError, 400),
    (q.TripleParseError, 400),
    (WriteForbiddenError, 403),
    (PersistenceError, 500),
)


def handle_request(engine: SparqlEngine, body: Any) -> Tuple[int, dict]:
    """
    Run the query carried by a request body of the form ``{"query": "..."}``.

    Returns a ``(status, payload)`` pair using HTTP status codes. Engine errors
    never escape: they become ``{"error": message}`` payloads.
    """
    try:
        if not isinstance(body, Mapping):
            raise ValidationError("Request body must be a JSON object")
        query = body.get("query")
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("A SPARQL query is required")
        return 200, engine.execute(query)
    except Exception as e:
        for error_type, status in _ERROR_STATUS:
            if isinstance(e, error_type):
                payload = {"error": str(e)}
                if isinstance(e, q.TripleParseError):
                    payload["triple"] = e.triple
                logger.debug("Request failed with %d: %s", status, e)
                return status, payload
        logger.exception("Unexpected error while processing SPARQL query")
        return 500, {"error": "Internal server error"}


def engine_from_settings(settings) -> SparqlEngine:
    return SparqlEngine(FileGateway(settings.dataset_path), read_only=settings.read_only)
