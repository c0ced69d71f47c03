from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import requests
from requests.auth import HTTPBasicAuth

from phbsparql.api import queries
from phbsparql.api.query import QueryKind, classify
from phbsparql.api.utils import log_http


class FusekiError(Exception):
    """Raised if a Fuseki endpoint answers with an error or cannot be reached"""


@dataclass
class FusekiConfig:
    base_url: str = "http://localhost:3030"
    dataset: str = "personas_historicas"
    query_endpoint: str = "query"
    update_endpoint: str = "update"
    data_endpoint: str = "data"
    username: str = ""
    password: str = ""
    timeout: float = 30

    def endpoints(self) -> dict:
        base = f"{self.base_url.rstrip('/')}/{self.dataset}"
        return {
            "query": f"{base}/{self.query_endpoint}",
            "update": f"{base}/{self.update_endpoint}",
            "data": f"{base}/{self.data_endpoint}",
        }

    def auth(self):
        if self.username and self.password:
            return HTTPBasicAuth(self.username, self.password)
        return None


class FusekiClient:
    """
    Executor backed by a Fuseki (SPARQL 1.1 over HTTP) dataset.

    It exposes the same ``execute(query) -> dict`` method as SparqlEngine, so
    the ontology service can run against either backend.
    """

    def __init__(self, config: Optional[FusekiConfig] = None, verbose: bool = False):
        self.config = config or FusekiConfig()
        self.verbose = verbose

    def _post(self, url: str, headers: dict, data) -> requests.Response:
        log_http("POST", url, headers=headers, verbose=self.verbose)
        try:
            response = requests.post(
                url,
                data=data,
                headers=headers,
                auth=self.config.auth(),
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            raise FusekiError(f"Could not reach Fuseki at {url}: {e}") from e
        log_http("POST", url, status=response.status_code, verbose=self.verbose)
        if not response.ok:
            raise FusekiError(
                f"Fuseki returned {response.status_code} for {url}: {response.text[:200]}"
            )
        return response

    def query(self, sparql: str) -> dict:
        """Run a SELECT/ASK query and return the SPARQL-JSON document."""
        response = self._post(
            self.config.endpoints()["query"],
            {
                "Content-Type": "application/sparql-query",
                "Accept": "application/sparql-results+json",
            },
            sparql.encode("utf-8"),
        )
        try:
            return response.json()
        except ValueError as e:
            raise FusekiError(
                f"Fuseki returned a non-JSON response for {response.url}: {response.text[:200]}"
            ) from e

    def update(self, sparql: str) -> dict:
        self._post(
            self.config.endpoints()["update"],
            {"Content-Type": "application/sparql-update"},
            sparql.encode("utf-8"),
        )
        return {"success": True}

    def execute(self, sparql: str) -> dict:
        if classify(sparql) is QueryKind.SELECT:
            return self.query(sparql)
        return self.update(sparql)

    def upload(
        self,
        data: str,
        graph_uri: Optional[str] = None,
        content_type: str = "text/turtle",
    ) -> dict:
        """
        Load RDF data into the dataset through the graph store protocol.

        Parameters:
        - data: serialized RDF
        - graph_uri: target named graph; the default graph when omitted
        - content_type: media type of ``data``
        """
        url = self.config.endpoints()["data"]
        if graph_uri:
            url += f"?graph={quote(graph_uri, safe='')}"
        self._post(url, {"Content-Type": content_type}, data.encode("utf-8"))
        print(f"Uploaded {len(data)} bytes to {url}")
        return {"success": True}

    def stats(self) -> dict:
        result = self.query(queries.FUSEKI_STATS_QUERY)
        bindings = result.get("results", {}).get("bindings", [])
        row = bindings[0] if bindings else {}
        stats = {
            name: int(row.get(name, {}).get("value", 0))
            for name in ("subjects", "predicates", "objects", "triples")
        }
        graphs = self.query(queries.FUSEKI_GRAPHS_QUERY)
        stats["graphs"] = [
            b["g"]["value"] for b in graphs.get("results", {}).get("bindings", []) if "g" in b
        ]
        return stats

    def test_connection(self) -> dict:
        try:
            self.query(queries.FUSEKI_PING_QUERY)
        except FusekiError as e:
            return {"success": False, "message": str(e)}
        return {
            "success": True,
            "message": f"Connected to {self.config.endpoints()['query']}",
        }
