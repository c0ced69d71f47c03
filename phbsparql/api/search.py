import logging
from typing import Optional

from phbsparql.api import dbpedia, ontology

logger = logging.getLogger(__name__)


def federated_search(
    search_term: str,
    language: str = "es",
    executor: Optional[ontology.Executor] = None,
    endpoint: str = "es",
    limit: int = 10,
    with_details: bool = True,
) -> dict:
    """
    Search DBpedia and the local ontology and merge the results.

    A source that fails is logged and reported as ``False`` in ``sources``;
    the other source's results are still returned. The local ontology is
    skipped when no executor is given.

    Returns:
    {"results": [person dicts, DBpedia first], "sources": {"dbpedia": bool, "ontology": bool}}
    """
    results = []
    sources = {"dbpedia": False, "ontology": False}

    try:
        found = dbpedia.search_historical_figures(
            search_term, language, endpoint, limit=limit, with_details=with_details
        )
        results.extend(person.to_dict() for person in found)
        sources["dbpedia"] = True
    except Exception as e:
        logger.error("DBpedia search failed: %s", e)

    if executor is not None:
        try:
            found = ontology.search_historical_figures(executor, search_term)
            results.extend(person.to_dict() for person in found)
            sources["ontology"] = True
        except Exception as e:
            logger.error("Local ontology search failed: %s", e)

    logger.debug(
        "Federated search: %d result(s), sources=%s", len(results), sources
    )
    return {"results": results, "sources": sources}
