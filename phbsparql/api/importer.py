import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import List

from phbsparql.api import dbpedia
from phbsparql.api.ontology import (
    PERSON_TYPE,
    Executor,
    HistoricalPerson,
    OntologyImportError,
    import_entities,
)
from phbsparql.api.utils import slugify

logger = logging.getLogger(__name__)

_DATE_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")


def _date_only(value: str) -> str:
    """"1809-07-25T00:00:00Z" -> "1809-07-25"; anything unparseable becomes ""."""
    if not value:
        return ""
    match = _DATE_PREFIX_RE.match(value.strip())
    return match.group(0) if match else ""


def transform_to_ontology_entities(persons: List[HistoricalPerson]) -> List[dict]:
    """
    Convert DBpedia search results into entities for ``import_entities``.

    The id is derived from the name; persons whose name yields an empty id
    are dropped.
    """
    entities = []
    for person in persons:
        entity_id = slugify(person.name)
        if not entity_id:
            logger.warning("Skipping person without a usable name: %s", person.uri)
            continue
        occupations = person.ocupacion
        if isinstance(occupations, str):
            occupations = [occupations] if occupations else []
        entities.append(
            {
                "id": entity_id,
                "label": person.name,
                "description": person.description or "",
                "fechaNacimiento": _date_only(person.fechaNacimiento),
                "fechaFallecimiento": _date_only(person.fechaFallecimiento),
                "lugarNacimiento": person.lugarNacimiento or "",
                "lugarFallecimiento": person.lugarFallecimiento or "",
                "nacionalidad": person.nacionalidad or "Boliviana",
                "ocupacion": list(occupations),
                "imagenReferencia": person.thumbnail or "",
                "type": PERSON_TYPE,
            }
        )
    return entities


def read_history(path: str) -> List[dict]:
    """Return the import history; a missing or corrupt file counts as empty."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            history = json.load(f)
    except FileNotFoundError:
        return []
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable import history %s: %s", path, e)
        return []
    return history if isinstance(history, list) else []


def append_history(path: str, entry: dict) -> None:
    history = read_history(path)
    history.append(entry)
    dirpath = os.path.dirname(path)
    if dirpath:
        os.makedirs(dirpath, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(history, f, indent=2, ensure_ascii=False)


def import_from_dbpedia(
    search_term: str,
    limit: int,
    executor: Executor,
    history_path: str,
    endpoint: str = "es",
) -> List[dict]:
    """
    Search DBpedia, transform the hits and write them to the ontology.

    Parameters:
    - search_term: DBpedia search text
    - limit: maximum number of DBpedia results
    - executor: backend the entities are written to
    - history_path: JSON file every import attempt is appended to

    Returns:
    The imported entities. Raises OntologyImportError if nothing could be
    imported or the backend rejected a write.
    """
    details = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "searchTerm": search_term,
        "limit": limit,
        "status": "started",
    }
    try:
        print(f"Searching DBpedia for '{search_term}' (limit {limit})")
        persons = dbpedia.search_historical_figures(search_term, "es", endpoint, limit=limit)
        entities = transform_to_ontology_entities(persons)
        if not entities:
            raise OntologyImportError("No valid entities found to import")

        import_entities(executor, entities, PERSON_TYPE)
        details.update(status="success", importedCount=len(entities))
        return entities
    except Exception as e:
        details.update(status="failed", error=str(e))
        raise
    finally:
        try:
            append_history(history_path, details)
        except OSError as e:
            logger.error("Could not write import history %s: %s", history_path, e)
