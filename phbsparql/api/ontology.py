"""
Service layer over the local ontology.

Functions here talk to an *executor*: any object with an
``execute(query) -> dict`` method, i.e. ``SparqlEngine`` for the Turtle file
or ``FusekiClient`` for a Fuseki dataset.
"""

import logging
from dataclasses import asdict, dataclass
from typing import List, Optional, Protocol

from tqdm import tqdm

from phbsparql.api import queries
from phbsparql.api.literals import decode_if_encoded, escape_literal, normalize_for_search
from phbsparql.api.query import QueryKind, classify
from phbsparql.api.turtle import PHB_NS
from phbsparql.api.utils import local_id_from_uri, slugify

logger = logging.getLogger(__name__)

PERSON_TYPE = "PersonaHistoricaBoliviana"

# entity key -> phb: predicate, in the order the triples are written
_OPTIONAL_FIELDS = (
    "fechaNacimiento",
    "fechaFallecimiento",
    "lugarNacimiento",
    "lugarFallecimiento",
    "nacionalidad",
)


class Executor(Protocol):
    def execute(self, query: str) -> dict: ...


class OntologyImportError(Exception):
    """Raised if entities could not be written to the ontology"""


@dataclass
class HistoricalPerson:
    """A historical figure in the display schema shared by all sources."""

    id: str
    uri: str
    name: str
    description: str = ""
    thumbnail: str = ""
    fechaNacimiento: str = ""
    fechaFallecimiento: str = ""
    lugarNacimiento: str = ""
    lugarFallecimiento: str = ""
    nacionalidad: str = ""
    ocupacion: str = ""
    source: str = "ontology"
    type: str = PERSON_TYPE

    def to_dict(self) -> dict:
        return asdict(self)


def entity_uri(entity_id: str) -> str:
    return f"{PHB_NS}{entity_id}"


def build_insert_query(entity: dict, entity_type: str = PERSON_TYPE) -> Optional[str]:
    """
    Build the INSERT DATA query for one entity.

    Parameters:
    - entity: dict with at least "id" and "label"; optional "description",
      the date/place fields, "nacionalidad", "ocupacion" (list or string) and
      "imagenReferencia"
    - entity_type: local name of the phb: class of the entity

    Returns:
    The query string, or None if the entity lacks an id or label.
    """
    if not entity.get("id") or not entity.get("label"):
        return None

    uri = entity_uri(entity["id"])
    triples = [
        f"<{uri}> rdf:type phb:{entity_type} .",
        f'<{uri}> phb:nombre "{escape_literal(entity["label"])}" .',
        f'<{uri}> phb:resumen "{escape_literal(entity.get("description", ""))}" .',
    ]
    for key in _OPTIONAL_FIELDS:
        if entity.get(key):
            triples.append(f'<{uri}> phb:{key} "{escape_literal(entity[key])}" .')

    occupations = entity.get("ocupacion") or []
    if isinstance(occupations, str):
        occupations = [occupations]
    for occupation in occupations:
        triples.append(f'<{uri}> phb:ocupacion "{escape_literal(occupation)}" .')

    if entity.get("imagenReferencia"):
        triples.append(
            f'<{uri}> phb:imagenReferencia "{escape_literal(entity["imagenReferencia"])}" .'
        )

    return queries.INSERT_QUERY.format(triples="\n  ".join(triples))


def import_entities(
    executor: Executor, entities: List[dict], entity_type: str = PERSON_TYPE
) -> int:
    """
    Write entities to the ontology, one INSERT DATA query per entity.

    Entities without an id or label are skipped. Returns the number of
    entities written; raises OntologyImportError if the backend rejects one.
    """
    if not entities:
        print("No entities to import")
        return 0

    insert_queries = []
    for entity in entities:
        insert_query = build_insert_query(entity, entity_type)
        if insert_query is None:
            logger.warning("Skipping invalid entity: %r", entity)
            continue
        insert_queries.append(insert_query)

    for insert_query in tqdm(insert_queries, desc="Importing", unit="entity"):
        logger.debug("INSERT query:\n%s", insert_query)
        response = executor.execute(insert_query)
        if not response.get("success"):
            raise OntologyImportError(
                response.get("error") or "Unknown error while executing the INSERT query"
            )

    print(f"Imported {len(insert_queries)} entities into the ontology")
    return len(insert_queries)


def _value(binding: dict, name: str, decode: bool = False) -> str:
    value = binding.get(name, {}).get("value", "")
    return decode_if_encoded(value) if decode else value


def person_from_binding(binding: dict, decode: bool = False) -> HistoricalPerson:
    """
    Build a HistoricalPerson from a local ontology SPARQL-JSON binding.

    The summary is read from ?descripcion or ?resumen, whichever is bound.
    With ``decode`` set, literal values that look Base64-encoded are decoded.
    """
    uri = _value(binding, "persona")
    description = _value(binding, "descripcion", decode) or _value(binding, "resumen", decode)
    return HistoricalPerson(
        id=local_id_from_uri(uri),
        uri=uri,
        name=_value(binding, "nombre", decode),
        description=description,
        thumbnail=_value(binding, "imagenReferencia"),
        fechaNacimiento=_value(binding, "fechaNacimiento", decode),
        fechaFallecimiento=_value(binding, "fechaFallecimiento", decode),
        lugarNacimiento=_value(binding, "lugarNacimiento", decode),
        lugarFallecimiento=_value(binding, "lugarFallecimiento", decode),
        nacionalidad=_value(binding, "nacionalidad", decode),
        ocupacion=_value(binding, "ocupacion", decode),
        source="ontology",
    )


def _bindings(result: dict) -> list:
    return (result or {}).get("results", {}).get("bindings", []) or []


def search_historical_figures(executor: Executor, search_term: str) -> List[HistoricalPerson]:
    """Search the local ontology by name or summary (diacritic-insensitive)."""
    term = escape_literal(normalize_for_search(search_term))
    result = executor.execute(queries.ONTOLOGY_SEARCH_QUERY.format(term=term))

    persons: List[HistoricalPerson] = []
    seen = set()
    for binding in _bindings(result):
        person = person_from_binding(binding)
        if person.id in seen:
            continue
        seen.add(person.id)
        persons.append(person)
    logger.debug("Local ontology returned %d unique result(s)", len(persons))
    return persons


def list_historical_figures(executor: Executor) -> List[HistoricalPerson]:
    """Return every historical figure stored in the ontology."""
    result = executor.execute(queries.HISTORICAL_FIGURES_QUERY)
    return [person_from_binding(b, decode=True) for b in _bindings(result)]


# variable -> alternatives accepted in free-form queries
_BINDING_ALIASES = {
    "persona": ("s",),
    "nombre": ("label",),
    "descripcion": ("resumen", "abstract", "comment"),
    "imagenReferencia": ("thumbnail",),
}

_MISSING_TEXT = {
    "es": ("Sin nombre", "Sin descripción"),
    "en": ("No name", "No description"),
}


def persons_from_query(executor: Executor, query: str, language: str = "es") -> List[HistoricalPerson]:
    """
    Run a user-written SELECT and read each result row as a historical figure.

    Parameters:
    - executor: backend the query runs against
    - query: SELECT query; ?persona (or ?s) should bind the figure's IRI
    - language: "es" or "en", used for the placeholder of a missing name or summary

    Returns:
    One HistoricalPerson per binding, in result order, with Base64 literals decoded.
    """
    if classify(query) is not QueryKind.SELECT:
        raise ValueError("Only SELECT queries can be read as historical figures")
    missing_name, missing_description = _MISSING_TEXT.get(language, _MISSING_TEXT["en"])
    persons = []
    for binding in _bindings(executor.execute(query)):
        row = dict(binding)
        for name, aliases in _BINDING_ALIASES.items():
            if name not in row:
                alias = next((a for a in aliases if a in row), None)
                if alias is not None:
                    row[name] = row[alias]
        person = person_from_binding(row, decode=True)
        if not person.id:
            person.id = slugify(person.name)
        person.name = person.name or missing_name
        person.description = person.description or missing_description
        persons.append(person)
    return persons


def describe(executor: Executor, uri: str) -> List[dict]:
    """Return the (predicate, value) pairs of one resource, rdf:type excluded."""
    result = executor.execute(queries.DESCRIBE_QUERY.format(uri=uri))
    return [
        {"predicate": b["predicado"]["value"], "value": b["valor"]["value"]}
        for b in _bindings(result)
        if "predicado" in b and "valor" in b
    ]


def clear_ontology(executor: Executor) -> dict:
    return executor.execute(queries.CLEAR_QUERY)
