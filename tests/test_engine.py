import threading
from unittest.mock import patch

import pytest

from phbsparql.api.engine import (
    SparqlEngine,
    WriteForbiddenError,
    engine_from_settings,
    handle_request,
)
from phbsparql.api.persistence import FileGateway, NotFoundError, PersistenceError
from phbsparql.api.turtle import BOOTSTRAP_DOCUMENT
from phbsparql.config import Settings

from conftest import PHB, SAMPLE_DOCUMENT

INSERT_P3 = (
    "INSERT DATA { "
    f"<{PHB}P3> rdf:type phb:PersonaHistoricaBoliviana . "
    f'<{PHB}P3> phb:nombre "Antonio José de Sucre" . '
    "}"
)
SELECT_ALL = "SELECT ?persona ?nombre WHERE { ?persona rdf:type phb:PersonaHistoricaBoliviana . }"


def names(payload):
    return [b["nombre"]["value"] for b in payload["results"]["bindings"]]


def test_select_on_missing_file_bootstraps_dataset(empty_engine, dataset_path):
    payload = empty_engine.execute(SELECT_ALL)
    assert payload["results"]["bindings"] == []
    assert dataset_path.read_text(encoding="utf-8") == BOOTSTRAP_DOCUMENT


def test_read_only_engine_does_not_create_missing_file(dataset_path):
    engine = SparqlEngine(FileGateway(str(dataset_path)), read_only=True)
    assert engine.execute(SELECT_ALL)["results"]["bindings"] == []
    assert not dataset_path.exists()


def test_insert_is_persisted(engine, sample_dataset):
    assert engine.execute(INSERT_P3) == {"success": True}

    fresh = SparqlEngine(FileGateway(str(sample_dataset)))
    assert names(fresh.execute(SELECT_ALL)) == [
        "Simón Bolívar",
        "Juana Azurduy",
        "Antonio José de Sucre",
    ]
    assert 'phb:P3 phb:nombre "Antonio José de Sucre" .' in sample_dataset.read_text(
        encoding="utf-8"
    )


def test_insert_into_missing_file(empty_engine, dataset_path):
    empty_engine.execute(INSERT_P3)
    text = dataset_path.read_text(encoding="utf-8")
    assert text.startswith(BOOTSTRAP_DOCUMENT)
    assert "phb:P3 rdf:type phb:PersonaHistoricaBoliviana ." in text


def test_read_only_rejects_insert_without_touching_file(sample_dataset):
    engine = SparqlEngine(FileGateway(str(sample_dataset)), read_only=True)
    with pytest.raises(WriteForbiddenError):
        engine.execute(INSERT_P3)

    status, payload = handle_request(engine, {"query": INSERT_P3})
    assert status == 403
    assert "error" in payload
    assert sample_dataset.read_text(encoding="utf-8") == SAMPLE_DOCUMENT


def test_read_only_still_answers_select(sample_dataset):
    engine = SparqlEngine(FileGateway(str(sample_dataset)), read_only=True)
    assert names(engine.execute(SELECT_ALL)) == ["Simón Bolívar", "Juana Azurduy"]


def test_failed_insert_leaves_file_unchanged(engine, sample_dataset):
    status, payload = handle_request(
        engine, {"query": f"INSERT DATA {{ <{PHB}P3> phb:nombre . }}"}
    )
    assert status == 400
    assert payload["triple"] == f"<{PHB}P3> phb:nombre ."
    assert payload["error"].startswith("Could not parse triple:")
    assert sample_dataset.read_text(encoding="utf-8") == SAMPLE_DOCUMENT


def test_delete_where_clears_dataset(engine, sample_dataset):
    assert engine.execute("DELETE WHERE { ?s ?p ?o }") == {"success": True, "removed": 7}
    assert sample_dataset.read_text(encoding="utf-8") == BOOTSTRAP_DOCUMENT


@pytest.mark.parametrize(
    "body",
    [{}, {"query": ""}, {"query": "   "}, {"query": 42}, "SELECT ?x WHERE {}", None],
)
def test_handle_request_requires_query(engine, body):
    status, payload = handle_request(engine, body)
    assert status == 400
    assert payload["error"]


def test_handle_request_unsupported_query(engine):
    status, payload = handle_request(engine, {"query": "ASK { ?s ?p ?o }"})
    assert status == 400
    assert "Unsupported query" in payload["error"]


def test_handle_request_select(engine):
    status, payload = handle_request(
        engine,
        {"query": 'SELECT ?nombre WHERE { ?persona phb:nombre ?nombre FILTER(CONTAINS(?nombre, "juana")) }'},
    )
    assert status == 200
    assert names(payload) == ["Juana Azurduy"]


def test_handle_request_hides_unexpected_errors(engine, caplog):
    with patch.object(SparqlEngine, "execute", side_effect=RuntimeError("boom /secret/path")):
        status, payload = handle_request(engine, {"query": SELECT_ALL})
    assert status == 500
    assert payload == {"error": "Internal server error"}
    assert "Unexpected error" in caplog.text


def test_corrupt_dataset_is_a_persistence_error(dataset_path):
    dataset_path.parent.mkdir(parents=True)
    dataset_path.write_text("this is not turtle", encoding="utf-8")
    engine = SparqlEngine(FileGateway(str(dataset_path)))
    with pytest.raises(PersistenceError):
        engine.execute(SELECT_ALL)

    status, payload = handle_request(engine, {"query": SELECT_ALL})
    assert status == 500
    assert str(dataset_path) not in payload["error"]


def test_concurrent_inserts_are_all_kept(empty_engine, dataset_path):
    def insert(i):
        SparqlEngine(FileGateway(str(dataset_path))).execute(
            "INSERT DATA { "
            f"<{PHB}C{i}> rdf:type phb:PersonaHistoricaBoliviana . "
            f'<{PHB}C{i}> phb:nombre "Persona {i}" . '
            "}"
        )

    threads = [threading.Thread(target=insert, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    payload = empty_engine.execute(SELECT_ALL)
    assert sorted(names(payload)) == sorted(f"Persona {i}" for i in range(8))


def test_engine_from_settings(dataset_path):
    engine = engine_from_settings(Settings(dataset_path=str(dataset_path), read_only=True))
    assert engine.read_only
    assert engine.gateway.path == str(dataset_path)


class _RacingGateway(FileGateway):
    """Lets another writer commit between the missing-file read and the bootstrap."""

    def __init__(self, path, on_missing):
        super().__init__(path)
        self._on_missing = on_missing

    def read(self):
        try:
            return super().read()
        except NotFoundError:
            on_missing, self._on_missing = self._on_missing, None
            if on_missing is not None:
                on_missing()
            raise


def test_bootstrap_does_not_overwrite_concurrent_insert(dataset_path):
    def insert_p9():
        other = SparqlEngine(FileGateway(str(dataset_path)))
        assert other.execute(
            "INSERT DATA { "
            f"<{PHB}P9> rdf:type phb:PersonaHistoricaBoliviana . "
            f'<{PHB}P9> phb:nombre "Germán Busch" . '
            "}"
        ) == {"success": True}

    engine = SparqlEngine(_RacingGateway(str(dataset_path), insert_p9))
    assert names(engine.execute(SELECT_ALL)) == ["Germán Busch"]

    fresh = SparqlEngine(FileGateway(str(dataset_path)))
    assert names(fresh.execute(SELECT_ALL)) == ["Germán Busch"]
    assert "Germán Busch" in dataset_path.read_text(encoding="utf-8")
