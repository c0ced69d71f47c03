import json
import logging
import os

logger = logging.getLogger(__name__)


class MappingsError(Exception):
    """Raised if the mappings file cannot be read or written"""


def empty_mappings() -> dict:
    return {"classMappings": [], "propertyMappings": [], "languageMappings": []}


def load_mappings(path: str) -> dict:
    """
    Return the saved DBpedia-to-ontology mappings.

    A missing file yields empty mappings. An unreadable or corrupt file
    raises MappingsError.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            mappings = json.load(f)
    except FileNotFoundError:
        return empty_mappings()
    except (OSError, ValueError) as e:
        logger.debug("Could not load mappings from %s: %s", path, e)
        raise MappingsError(f"Failed to load mappings: {e}") from e
    if not isinstance(mappings, dict):
        raise MappingsError("Failed to load mappings: expected a JSON object")
    return mappings


def save_mappings(path: str, mappings: dict) -> None:
    """
    Replace the mappings file with ``mappings``.

    Parameters:
    - path: target JSON file; missing directories are created
    - mappings: JSON object, usually with classMappings, propertyMappings
      and languageMappings lists
    """
    if not isinstance(mappings, dict):
        raise MappingsError("Mappings must be a JSON object")
    dirpath = os.path.dirname(path)
    try:
        if dirpath:
            os.makedirs(dirpath, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(mappings, f, indent=2, ensure_ascii=False)
    except OSError as e:
        raise MappingsError(f"Failed to save mappings: {e}") from e
    print(f"Mappings saved to {path}")
