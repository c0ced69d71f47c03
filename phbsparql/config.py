import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from phbsparql.extensions.fuseki import FusekiConfig

DEFAULT_DATASET_PATH = os.path.join("data", "ontologia_personas_historicas_bolivianas.ttl")
DEFAULT_HISTORY_PATH = "import-history.json"
DEFAULT_MAPPINGS_PATH = os.path.join("config", "mappings.json")
DBPEDIA_ENDPOINT = "https://dbpedia.org/sparql"
ES_DBPEDIA_ENDPOINT = "https://es.dbpedia.org/sparql"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUE_VALUES


@dataclass
class Settings:
    dataset_path: str = DEFAULT_DATASET_PATH
    history_path: str = DEFAULT_HISTORY_PATH
    mappings_path: str = DEFAULT_MAPPINGS_PATH
    read_only: bool = False
    backend: str = "local"
    dbpedia_endpoint: str = DBPEDIA_ENDPOINT
    es_dbpedia_endpoint: str = ES_DBPEDIA_ENDPOINT
    fuseki: FusekiConfig = field(default_factory=FusekiConfig)


def load_settings(env_file: str | None = None) -> Settings:
    """
    Build the settings from the environment (and a .env file, if present).

    The local ontology is read-only when PHB_READ_ONLY is set or when
    PHB_ENV is "production".
    """
    load_dotenv(env_file)

    backend = os.getenv("PHB_BACKEND", "local").strip().lower()
    if backend not in ("local", "fuseki"):
        raise ValueError(f"Invalid PHB_BACKEND '{backend}': expected 'local' or 'fuseki'")

    timeout = os.getenv("FUSEKI_TIMEOUT", "30")
    try:
        timeout_seconds = float(timeout)
    except ValueError:
        raise ValueError(f"Invalid FUSEKI_TIMEOUT '{timeout}': expected a number of seconds")

    fuseki = FusekiConfig(
        base_url=os.getenv("FUSEKI_URL", FusekiConfig.base_url),
        dataset=os.getenv("FUSEKI_DATASET", FusekiConfig.dataset),
        username=os.getenv("FUSEKI_USERNAME", ""),
        password=os.getenv("FUSEKI_PASSWORD", ""),
        timeout=timeout_seconds,
    )

    return Settings(
        dataset_path=os.getenv("PHB_DATASET_PATH", DEFAULT_DATASET_PATH),
        history_path=os.getenv("PHB_HISTORY_PATH", DEFAULT_HISTORY_PATH),
        mappings_path=os.getenv("PHB_MAPPINGS_PATH", DEFAULT_MAPPINGS_PATH),
        read_only=_env_flag("PHB_READ_ONLY")
        or os.getenv("PHB_ENV", "").strip().lower() == "production",
        backend=backend,
        dbpedia_endpoint=os.getenv("DBPEDIA_ENDPOINT", DBPEDIA_ENDPOINT),
        es_dbpedia_endpoint=os.getenv("DBPEDIA_ES_ENDPOINT", ES_DBPEDIA_ENDPOINT),
        fuseki=fuseki,
    )
