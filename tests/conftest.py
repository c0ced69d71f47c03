import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from phbsparql.api.engine import SparqlEngine
from phbsparql.api.persistence import FileGateway
from phbsparql.api.turtle import BOOTSTRAP_DOCUMENT

PHB = "http://example.org/personasHistoricasBolivianas#"

SAMPLE_DOCUMENT = BOOTSTRAP_DOCUMENT + (
    "phb:P1 rdf:type phb:PersonaHistoricaBoliviana .\n"
    'phb:P1 phb:nombre "Simón Bolívar" .\n'
    'phb:P1 phb:resumen "Libertador y primer presidente de Bolivia" .\n'
    'phb:P1 phb:lugarNacimiento "Caracas" .\n'
    "phb:P2 rdf:type phb:PersonaHistoricaBoliviana .\n"
    'phb:P2 phb:nombre "Juana Azurduy" .\n'
    'phb:P2 phb:resumen "Guerrillera de la independencia del Alto Perú" .\n'
)


@pytest.fixture
def dataset_path(tmp_path):
    """Path of a dataset file that does not exist yet."""
    return tmp_path / "data" / "ontologia.ttl"


@pytest.fixture
def sample_dataset(dataset_path):
    dataset_path.parent.mkdir(parents=True, exist_ok=True)
    dataset_path.write_text(SAMPLE_DOCUMENT, encoding="utf-8")
    return dataset_path


@pytest.fixture
def engine(sample_dataset):
    return SparqlEngine(FileGateway(str(sample_dataset)))


@pytest.fixture
def empty_engine(dataset_path):
    return SparqlEngine(FileGateway(str(dataset_path)))


# --- Mock Fuseki server ---

class MockFusekiHandler(BaseHTTPRequestHandler):
    """
    Acts like a Fuseki dataset named "ds".
    Every request is recorded on the server so tests can inspect it.
    """

    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length).decode("utf-8")
        self.server.requests.append(
            {
                "path": self.path,
                "content_type": self.headers.get("Content-Type"),
                "authorization": self.headers.get("Authorization"),
                "body": body,
            }
        )

        if self.path == "/ds/query":
            payload = {
                "head": {"vars": ["s"]},
                "results": {"bindings": [{"s": {"type": "uri", "value": PHB + "P1"}}]},
            }
            data = json.dumps(payload).encode("utf-8")
            self.send_response(200)
            self.send_header("Content-Type", "application/sparql-results+json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)
            return

        if self.path == "/ds/update" or self.path.startswith("/ds/data"):
            self.send_response(204)
            self.end_headers()
            return

        self.send_error(404, "Dataset not found on mock Fuseki")

    def log_message(self, format, *args):
        pass


@pytest.fixture(scope="session")
def fuseki_server():
    """
    Start a mock Fuseki server in a background thread.
    Yields the HTTPServer; its base URL is ``server.base_url``.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("localhost", 0))
    port = sock.getsockname()[1]
    sock.close()

    server = HTTPServer(("localhost", port), MockFusekiHandler)
    server.requests = []
    server.base_url = f"http://localhost:{port}"

    server_thread = threading.Thread(target=server.serve_forever)
    server_thread.daemon = True
    server_thread.start()

    yield server

    server.shutdown()


@pytest.fixture
def mock_fuseki(fuseki_server):
    fuseki_server.requests.clear()
    return fuseki_server
