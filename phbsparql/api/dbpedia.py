import logging
from typing import List, Optional

from SPARQLWrapper import JSON, SPARQLWrapper

from phbsparql.api import queries
from phbsparql.api.literals import escape_literal
from phbsparql.api.ontology import PERSON_TYPE, HistoricalPerson
from phbsparql.api.utils import local_id_from_uri, log_http
from phbsparql.config import DBPEDIA_ENDPOINT, ES_DBPEDIA_ENDPOINT

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "es": ES_DBPEDIA_ENDPOINT,
    "en": DBPEDIA_ENDPOINT,
}
LANGUAGES = ("es", "en", "both")

# DBpedia classes that can be imported, and the ontology class each maps to
CATEGORIES = [
    {
        "id": "historical-bolivian-person",
        "name": {"es": "Personas Históricas Bolivianas", "en": "Bolivian Historical Figures"},
        "dbpediaClass": "dbo:Person",
        "ontologyClass": PERSON_TYPE,
        "description": {
            "es": "Personas destacadas en la historia de Bolivia",
            "en": "Prominent figures in Bolivian history",
        },
    },
]


def list_categories(language: str = "es") -> List[dict]:
    """Return the importable categories with name and description in ``language`` (English fallback)."""
    return [
        {
            **category,
            "name": category["name"].get(language, category["name"]["en"]),
            "description": category["description"].get(language, category["description"]["en"]),
        }
        for category in CATEGORIES
    ]


def _endpoint_url(endpoint: str) -> str:
    if endpoint in ENDPOINTS:
        return ENDPOINTS[endpoint]
    if endpoint.startswith(("http://", "https://")):
        return endpoint
    raise ValueError(f"Unknown DBpedia endpoint '{endpoint}': expected 'es', 'en' or a URL")


def query_dbpedia(query: str, endpoint: str = "es", verbose: bool = False) -> dict:
    """
    Execute a SPARQL query against a DBpedia endpoint.

    Parameters:
    - query: SPARQL query string
    - endpoint: "es" (es.dbpedia.org), "en" (dbpedia.org) or an endpoint URL
    - verbose: log the HTTP request at DEBUG level

    Returns:
    - Dictionary containing the query results
    """
    endpoint_url = _endpoint_url(endpoint)
    log_http("POST", endpoint_url, verbose=verbose)
    sparql = SPARQLWrapper(endpoint_url)
    sparql.method = "POST"
    sparql.setQuery(query)
    sparql.setReturnFormat(JSON)
    sparql.setTimeout(30)
    results = sparql.query().convert()
    logger.debug(
        "DBpedia returned %d binding(s)",
        len(results.get("results", {}).get("bindings", [])),
    )
    return results


def _value(binding: dict, name: str) -> str:
    return binding.get(name, {}).get("value", "")


def _label_or_local_id(binding: dict, name: str) -> str:
    return _value(binding, f"{name}Label") or local_id_from_uri(_value(binding, name))


def get_person_details(uri: str, language: str = "es", endpoint: str = "es") -> dict:
    """
    Fetch display labels for the places, nationality and occupation of a person.

    Never raises: any error is logged and an empty dict is returned.
    """
    query = queries.DBPEDIA_PERSON_DETAILS_QUERY.format(uri=uri, language=language)
    try:
        result = query_dbpedia(query, endpoint)
    except Exception as e:
        logger.warning("Could not fetch details for %s: %s", uri, e)
        return {}

    bindings = result.get("results", {}).get("bindings", [])
    if not bindings:
        return {}
    binding = bindings[0]
    details = {
        "lugarNacimiento": _label_or_local_id(binding, "birthPlace"),
        "lugarFallecimiento": _label_or_local_id(binding, "deathPlace"),
        "nacionalidad": _label_or_local_id(binding, "nationality"),
        "ocupacion": _label_or_local_id(binding, "occupation"),
        "thumbnail": _value(binding, "thumbnail"),
    }
    return {key: value for key, value in details.items() if value}


def person_from_dbpedia_binding(binding: dict) -> HistoricalPerson:
    uri = _value(binding, "person")
    return HistoricalPerson(
        id=local_id_from_uri(uri),
        uri=uri,
        name=_value(binding, "name"),
        description=_value(binding, "abstract"),
        thumbnail=_value(binding, "thumbnail"),
        fechaNacimiento=_value(binding, "birthDate"),
        fechaFallecimiento=_value(binding, "deathDate"),
        lugarNacimiento=_value(binding, "birthPlace"),
        lugarFallecimiento=_value(binding, "deathPlace"),
        nacionalidad=_value(binding, "nationality"),
        ocupacion=_value(binding, "occupation"),
        source="dbpedia",
        type=PERSON_TYPE,
    )


def search_historical_figures(
    search_term: str,
    language: str = "es",
    endpoint: str = "es",
    limit: int = 10,
    with_details: bool = True,
    verbose: bool = False,
) -> List[HistoricalPerson]:
    """
    Search DBpedia for people related to Bolivia whose name or abstract
    contains ``search_term``.

    Parameters:
    - search_term: free text, matched case-insensitively
    - language: label/abstract language, "es", "en" or "both"
    - endpoint: "es" or "en" DBpedia endpoint, or an endpoint URL
    - limit: maximum number of rows requested
    - with_details: enrich every person with ``get_person_details``

    Returns:
    Unique persons (by id) in endpoint order.
    """
    if language not in LANGUAGES:
        raise ValueError(f"Invalid language '{language}': expected one of {', '.join(LANGUAGES)}")

    query = queries.DBPEDIA_SEARCH_QUERY.format(
        language_filter=queries.language_filter(language),
        term=escape_literal(search_term),
        bolivia_filter=queries.BOLIVIA_FILTER,
        limit=int(limit),
    )
    logger.debug("DBpedia search query:\n%s", query)
    result = query_dbpedia(query, endpoint, verbose=verbose)

    persons: List[HistoricalPerson] = []
    seen = set()
    details_language = "es" if endpoint == "es" else "en"
    for binding in result.get("results", {}).get("bindings", []):
        person = person_from_dbpedia_binding(binding)
        if person.id in seen:
            continue
        seen.add(person.id)
        if with_details:
            for key, value in get_person_details(person.uri, details_language, endpoint).items():
                setattr(person, key, value)
        persons.append(person)

    logger.debug("DBpedia search returned %d unique person(s)", len(persons))
    return persons


def get_historical_figure_details(
    uri: str, language: str = "es", endpoint: str = "es"
) -> Optional[HistoricalPerson]:
    """Fetch the full record of one DBpedia person, or None if it has no label/comment in ``language``."""
    query = queries.DBPEDIA_FIGURE_DETAILS_QUERY.format(uri=uri, language=language)
    result = query_dbpedia(query, endpoint)
    bindings = result.get("results", {}).get("bindings", [])
    if not bindings:
        return None

    binding = dict(bindings[0])
    binding["person"] = {"type": "uri", "value": uri}
    return person_from_dbpedia_binding(binding)
