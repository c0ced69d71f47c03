import base64

import pytest

from phbsparql.api import query as q
from phbsparql.api import turtle
from phbsparql.api.store import Term, TripleStore

from conftest import PHB, SAMPLE_DOCUMENT

PREFIXES = (
    "PREFIX rdf: <http://www.w3.org/1999/02/22-rdf-syntax-ns#>\n"
    "PREFIX phb: <http://example.org/personasHistoricasBolivianas#>\n"
)


@pytest.fixture
def store():
    return TripleStore(turtle.parse(SAMPLE_DOCUMENT))


def run_select(text, store):
    return q.evaluate_select(q.parse_query(text), store).to_json()


@pytest.mark.parametrize(
    "text, kind",
    [
        ("INSERT DATA { }", q.QueryKind.INSERT),
        ("prefix x: <y>\ninsert data { }", q.QueryKind.INSERT),
        ("DELETE WHERE { ?s ?p ?o }", q.QueryKind.DELETE),
        ("SELECT ?s WHERE { ?s ?p ?o }", q.QueryKind.SELECT),
    ],
)
def test_classify(text, kind):
    assert q.classify(text) is kind


def test_classify_rejects_other_queries():
    with pytest.raises(q.UnsupportedQueryError):
        q.classify("ASK { ?s ?p ?o }")


def test_split_triples_respects_literals_and_iris():
    block = (
        ' <http://example.org/a.b#P1> phb:nombre "Dr. José Ballivián" .\n'
        ' <http://example.org/a.b#P1> phb:resumen "Fin." . '
    )
    assert q.split_triples(block) == [
        '<http://example.org/a.b#P1> phb:nombre "Dr. José Ballivián" .',
        '<http://example.org/a.b#P1> phb:resumen "Fin." .',
    ]


def test_split_triples_respects_single_quoted_literals():
    block = f"<{PHB}P5> phb:nombre 'Dr. Mariano Melgarejo' . <{PHB}P5> phb:resumen \"Fin.\" ."
    assert q.split_triples(block) == [
        f"<{PHB}P5> phb:nombre 'Dr. Mariano Melgarejo' .",
        f'<{PHB}P5> phb:resumen "Fin." .',
    ]


def test_insert_single_quoted_literal():
    store = TripleStore()
    q.apply_insert(
        q.parse_query(f"INSERT DATA {{ <{PHB}P5> phb:nombre 'Dr. Mariano Melgarejo' . }}"),
        store,
    )
    assert store.match(PHB + "P5")[0].object == Term.literal("Dr. Mariano Melgarejo")


def test_parse_select_variables_and_search_term():
    parsed = q.parse_query(
        PREFIXES
        + 'SELECT ?persona ?nombre WHERE { ?persona phb:nombre ?nombre . '
        'FILTER(CONTAINS(LCASE(?nombre), "Bolívar")) }'
    )
    assert parsed.variables == ["persona", "nombre"]
    assert parsed.search_term == "bolivar"
    assert not parsed.describe_mode


def test_parse_select_without_variables_uses_defaults():
    parsed = q.parse_query("SELECT * WHERE { ?persona ?p ?o }")
    assert parsed.variables == ["nombre", "descripcion"]


def test_parse_select_without_where_is_invalid():
    with pytest.raises(q.InvalidSelectError):
        q.parse_query("SELECT ?nombre")


def test_search_term_is_last_literal_of_first_contains():
    parsed = q.parse_query(
        'SELECT ?nombre WHERE { ?persona phb:nombre ?nombre . '
        'FILTER(CONTAINS(REPLACE(LCASE(?nombre), "[\\\\u0300-\\\\u036f]", ""), "azurduy") || '
        'CONTAINS(LCASE(?descripcion), "otro")) }'
    )
    assert parsed.search_term == "azurduy"


def test_insert_then_select():
    store = TripleStore()
    insert = q.parse_query(
        "INSERT DATA { "
        f"<{PHB}P1> rdf:type phb:PersonaHistoricaBoliviana . "
        f'<{PHB}P1> phb:nombre "Juana Azurduy" . '
        "}"
    )
    q.apply_insert(insert, store)
    assert len(store) == 2

    result = run_select(
        "SELECT ?persona ?nombre WHERE { ?persona rdf:type phb:PersonaHistoricaBoliviana . "
        '?persona phb:nombre ?nombre . FILTER(CONTAINS(LCASE(?nombre), "azurduy")) }',
        store,
    )
    assert result["head"]["vars"] == ["persona", "nombre"]
    assert result["results"]["bindings"] == [
        {
            "persona": {"type": "uri", "value": PHB + "P1"},
            "nombre": {"type": "literal", "value": "Juana Azurduy"},
        }
    ]


def test_select_is_diacritic_insensitive(store):
    result = run_select(
        'SELECT ?nombre WHERE { ?persona phb:nombre ?nombre . FILTER(CONTAINS(LCASE(?nombre), "bolivar")) }',
        store,
    )
    assert [b["nombre"]["value"] for b in result["results"]["bindings"]] == ["Simón Bolívar"]


def test_select_filter_matches_summary(store):
    result = run_select(
        'SELECT ?persona WHERE { ?persona phb:resumen ?d . FILTER(CONTAINS(?d, "guerrillera")) }',
        store,
    )
    assert [b["persona"]["value"] for b in result["results"]["bindings"]] == [PHB + "P2"]


def test_select_without_filter_returns_every_person(store):
    result = run_select("SELECT ?persona ?lugarNacimiento WHERE { ?persona ?p ?o }", store)
    bindings = result["results"]["bindings"]
    assert len(bindings) == 2
    # P2 has no birth place: the variable is omitted rather than bound to ""
    assert bindings[1] == {"persona": {"type": "uri", "value": PHB + "P2"}}
    assert bindings[0]["lugarNacimiento"]["value"] == "Caracas"


def test_describe_mode(store):
    result = run_select(
        f"SELECT ?predicado ?valor WHERE {{ <{PHB}P1> ?predicado ?valor . }}", store
    )
    bindings = result["results"]["bindings"]
    assert len(bindings) == 3
    assert all(b["predicado"]["value"] != turtle.RDF_TYPE for b in bindings)
    assert {b["predicado"]["value"] for b in bindings} == {
        PHB + "nombre",
        PHB + "resumen",
        PHB + "lugarNacimiento",
    }


def test_select_against_empty_store():
    result = run_select("SELECT ?persona ?nombre WHERE { ?persona phb:nombre ?nombre }", TripleStore())
    assert result == {"head": {"vars": ["persona", "nombre"]}, "results": {"bindings": []}}


def test_insert_with_malformed_triple_leaves_store_unchanged(store):
    before = list(store)
    parsed = q.parse_query(
        f'INSERT DATA {{ <{PHB}P3> phb:nombre "Antonio José de Sucre" . <{PHB}P3> phb:resumen . }}'
    )
    with pytest.raises(q.TripleParseError) as excinfo:
        q.apply_insert(parsed, store)
    assert excinfo.value.triple == f"<{PHB}P3> phb:resumen ."
    assert str(excinfo.value).startswith("Could not parse triple:")
    assert list(store) == before


def test_insert_decodes_base64_literals():
    encoded = base64.b64encode("Germán Busch".encode("utf-8")).decode("ascii")
    store = TripleStore()
    q.apply_insert(
        q.parse_query(f'INSERT DATA {{ <{PHB}P4> phb:nombre "{encoded}" . }}'), store
    )
    assert store.match(PHB + "P4")[0].object == Term.literal("Germán Busch")


def test_insert_uses_declared_prefixes():
    store = TripleStore()
    q.apply_insert(
        q.parse_query(
            'PREFIX ex: <http://example.org/otro#>\nINSERT DATA { ex:X ex:nombre "x" . }'
        ),
        store,
    )
    assert store.match("http://example.org/otro#X")


def test_delete_where(store):
    removed = q.apply_delete(q.parse_query(f"DELETE WHERE {{ <{PHB}P1> ?p ?o }}"), store)
    assert removed == 4
    assert store.match(PHB + "P1") == []

    assert q.apply_delete(q.parse_query("DELETE WHERE { ?s ?p ?o }"), store) == 3
    assert len(store) == 0


def test_delete_where_requires_single_pattern():
    with pytest.raises(q.UnsupportedQueryError):
        q.parse_query("DELETE WHERE { ?s ?p }")
