"""
Interpreter for the small SPARQL subset the local ontology understands.

Supported shapes:

- ``INSERT DATA { <s> phb:p "o" . ... }``
- ``DELETE WHERE { ?s ?p ?o }`` (any position may be a constant)
- ``SELECT ?v1 ?v2 ... WHERE { ... FILTER(CONTAINS(..., "term")) }`` over
  instances of ``phb:PersonaHistoricaBoliviana``
- ``SELECT ?predicado ?valor WHERE { <s> ?predicado ?valor }`` to describe a
  single resource

The query text is matched with regular expressions rather than a grammar;
``OPTIONAL`` blocks, ``ORDER BY`` and ``LIMIT`` are accepted but not
evaluated.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from phbsparql.api import turtle
from phbsparql.api.literals import decode_quoted_segments, normalize_for_search
from phbsparql.api.store import Statement, Term, TripleStore

logger = logging.getLogger(__name__)

DEFAULT_VARIABLES = ["nombre", "descripcion"]
DESCRIBE_VARIABLES = {"predicado", "valor"}
SUBJECT_VARIABLE = "persona"

# query variable -> local name of the phb: predicate it is read from
VARIABLE_PREDICATES = {
    "nombre": "nombre",
    "descripcion": "resumen",
    "resumen": "resumen",
    "fechaNacimiento": "fechaNacimiento",
    "fechaFallecimiento": "fechaFallecimiento",
    "lugarNacimiento": "lugarNacimiento",
    "lugarFallecimiento": "lugarFallecimiento",
    "nacionalidad": "nacionalidad",
    "ocupacion": "ocupacion",
    "imagenReferencia": "imagenReferencia",
}


class QueryKind(Enum):
    """Kinds of query the interpreter can run"""

    INSERT = "INSERT"
    DELETE = "DELETE"
    SELECT = "SELECT"


class QueryError(Exception):
    """Base class for errors raised while interpreting a query"""


class UnsupportedQueryError(QueryError):
    """Raised if the query is neither INSERT DATA, DELETE WHERE nor SELECT"""


class InvalidSelectError(QueryError):
    """Raised if a SELECT query has no parseable WHERE clause"""


class TripleParseError(QueryError):
    """Raised if a triple inside INSERT DATA cannot be parsed"""

    def __init__(self, triple: str, reason: str = ""):
        self.triple = triple
        self.reason = reason
        super().__init__(f"Could not parse triple: {triple}")


@dataclass
class ParsedQuery:
    kind: QueryKind
    variables: List[str] = field(default_factory=list)
    triples: List[str] = field(default_factory=list)
    search_term: str = ""
    subject: Optional[str] = None
    prefixes: Dict[str, str] = field(default_factory=dict)
    delete_pattern: Optional[Tuple[Optional[str], Optional[str], Optional[str]]] = None

    @property
    def describe_mode(self) -> bool:
        return len(self.variables) == 2 and set(self.variables) == DESCRIBE_VARIABLES


Binding = Dict[str, Term]


@dataclass
class QueryResult:
    variables: List[str]
    bindings: List[Binding] = field(default_factory=list)

    def to_json(self) -> dict:
        """Return the result in the SPARQL 1.1 JSON results format."""
        return {
            "head": {"vars": list(self.variables)},
            "results": {
                "bindings": [
                    {name: term.to_json() for name, term in binding.items()}
                    for binding in self.bindings
                ]
            },
        }


_PREFIX_DECL_RE = re.compile(r"PREFIX\s+([A-Za-z][\w\-.]*)?:\s*<([^>]*)>", re.IGNORECASE)
_INSERT_BLOCK_RE = re.compile(r"INSERT\s+DATA\s*\{(.*)\}", re.IGNORECASE | re.DOTALL)
_DELETE_BLOCK_RE = re.compile(r"DELETE\s+WHERE\s*\{(.*?)\}", re.IGNORECASE | re.DOTALL)
_SELECT_RE = re.compile(r"\bSELECT\b(.*?)\bWHERE\s*\{", re.IGNORECASE | re.DOTALL)
_VARIABLE_RE = re.compile(r"[?$](\w+)")
_FILTER_RE = re.compile(r"\bFILTER\s*\(", re.IGNORECASE)
_CONTAINS_RE = re.compile(r"\bCONTAINS\s*\(", re.IGNORECASE)
_QUOTED_RE = re.compile(r'"((?:[^"\\]|\\.)*)"', re.DOTALL)
_DESCRIBE_SUBJECT_RE = re.compile(r"<([^>]+)>\s+\?predicado\s+\?valor", re.IGNORECASE)
_PATTERN_TERM_RE = re.compile(r'<[^>]*>|"(?:[^"\\]|\\.)*"|\S+')


def classify(text: str) -> QueryKind:
    """Detect which kind of query ``text`` is."""
    upper = (text or "").strip().upper()
    if "INSERT DATA" in upper:
        return QueryKind.INSERT
    if re.search(r"DELETE\s+WHERE", upper):
        return QueryKind.DELETE
    if "SELECT" in upper:
        return QueryKind.SELECT
    raise UnsupportedQueryError("Unsupported query: expected INSERT DATA, DELETE WHERE or SELECT")


def _declared_prefixes(text: str) -> Dict[str, str]:
    prefixes = dict(turtle.DEFAULT_PREFIXES)
    for name, namespace in _PREFIX_DECL_RE.findall(text):
        prefixes[name or ""] = namespace
    return prefixes


def _balanced_args(text: str, start: int) -> str:
    """Return the text between the parenthesis opened just before ``start`` and its match."""
    depth = 1
    pos = start
    in_string = False
    while pos < len(text):
        char = text[pos]
        if in_string:
            if char == "\\":
                pos += 1
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return text[start:pos]
        pos += 1
    return text[start:]


def split_triples(block: str) -> List[str]:
    """
    Split the body of an INSERT DATA block into single triple texts.

    A triple ends at a ``.`` followed by whitespace (or the end of the block);
    periods inside quoted literals (single or double quotes) and IRIs do not
    count.
    """
    triples = []
    current: List[str] = []
    quote = None
    in_iri = False
    pos = 0
    while pos < len(block):
        char = block[pos]
        current.append(char)
        if quote:
            if char == "\\" and pos + 1 < len(block):
                pos += 1
                current.append(block[pos])
            elif char == quote:
                quote = None
        elif in_iri:
            if char == ">":
                in_iri = False
        elif char in ('"', "'"):
            quote = char
        elif char == "<":
            in_iri = True
        elif char == "." and (pos + 1 == len(block) or block[pos + 1].isspace()):
            triples.append("".join(current).strip())
            current = []
        pos += 1
    rest = "".join(current).strip()
    if rest:
        triples.append(rest)
    return [t for t in triples if t and not t.upper().startswith("PREFIX")]


def _search_term(text: str) -> str:
    for filter_match in _FILTER_RE.finditer(text):
        body = _balanced_args(text, filter_match.end())
        contains = _CONTAINS_RE.search(body)
        if contains is None:
            continue
        literals = _QUOTED_RE.findall(_balanced_args(body, contains.end()))
        if literals:
            return re.sub(r"\\(.)", r"\1", literals[-1])
    return ""


def _parse_delete_pattern(block: str, prefixes: Dict[str, str]):
    terms = _PATTERN_TERM_RE.findall(block.strip().rstrip(".").strip())
    if len(terms) != 3:
        raise UnsupportedQueryError("DELETE WHERE supports a single triple pattern")
    pattern = []
    for term in terms:
        if term.startswith("?") or term.startswith("$"):
            pattern.append(None)
        elif term.startswith("<") and term.endswith(">"):
            pattern.append(term[1:-1])
        elif term.startswith('"'):
            pattern.append(term[1:-1])
        elif term == "a":
            pattern.append(turtle.RDF_TYPE)
        else:
            prefix, sep, local = term.partition(":")
            if not sep or prefix not in prefixes:
                raise UnsupportedQueryError(f"Unknown term in DELETE WHERE pattern: {term}")
            pattern.append(prefixes[prefix] + local)
    return tuple(pattern)


def parse_query(text: str) -> ParsedQuery:
    """
    Parse query text into a ParsedQuery.

    Raises UnsupportedQueryError, InvalidSelectError or TripleParseError.
    """
    text = (text or "").strip()
    kind = classify(text)
    prefixes = _declared_prefixes(text)

    if kind is QueryKind.INSERT:
        block = _INSERT_BLOCK_RE.search(text)
        if block is None:
            raise TripleParseError(text, "INSERT DATA requires a { ... } block")
        return ParsedQuery(kind, triples=split_triples(block.group(1)), prefixes=prefixes)

    if kind is QueryKind.DELETE:
        block = _DELETE_BLOCK_RE.search(text)
        if block is None:
            raise UnsupportedQueryError("DELETE WHERE requires a { ... } block")
        return ParsedQuery(
            kind,
            prefixes=prefixes,
            delete_pattern=_parse_delete_pattern(block.group(1), prefixes),
        )

    select = _SELECT_RE.search(text)
    if select is None:
        raise InvalidSelectError("Could not interpret SELECT query: missing WHERE clause")
    variables: List[str] = []
    for name in _VARIABLE_RE.findall(select.group(1)):
        if name not in variables:
            variables.append(name)
    if not variables:
        logger.debug("No variables in SELECT, defaulting to %s", DEFAULT_VARIABLES)
        variables = list(DEFAULT_VARIABLES)

    subject_match = _DESCRIBE_SUBJECT_RE.search(text)
    raw_term = _search_term(text)
    search_term = normalize_for_search(raw_term)
    if raw_term:
        logger.debug("Search term %r normalized to %r", raw_term, search_term)

    return ParsedQuery(
        kind,
        variables=variables,
        search_term=search_term,
        subject=subject_match.group(1) if subject_match else None,
        prefixes=prefixes,
    )


def apply_insert(parsed: ParsedQuery, store: TripleStore) -> List[Statement]:
    """
    Parse every triple of an INSERT DATA query and add them to ``store``.

    All triples are parsed before the store is touched, so a malformed triple
    leaves the store unchanged.
    """
    parsed_statements: List[Statement] = []
    for triple in parsed.triples:
        decoded = decode_quoted_segments(triple)
        if not decoded.rstrip().endswith("."):
            decoded = decoded + " ."
        try:
            statements = turtle.parse_triple(decoded, parsed.prefixes)
        except turtle.ParseError as e:
            raise TripleParseError(triple, str(e)) from e
        if not statements:
            raise TripleParseError(triple, "no statement found")
        logger.debug("Parsed triple: %s", decoded)
        parsed_statements.extend(statements)

    store.add_statements(parsed_statements)
    return parsed_statements


def apply_delete(parsed: ParsedQuery, store: TripleStore) -> int:
    subject, predicate, obj = parsed.delete_pattern or (None, None, None)
    removed = store.remove_all(subject, predicate, obj)
    logger.debug("DELETE WHERE removed %d statements", removed)
    return removed


def _first_value(store: TripleStore, subject: str, predicate: str) -> Optional[Term]:
    found = store.match(subject, predicate)
    return found[0].object if found else None


def _matches_search(store: TripleStore, subject: str, search_term: str) -> bool:
    if not search_term:
        return True
    for local_name in ("nombre", "resumen"):
        value = _first_value(store, subject, turtle.PHB_NS + local_name)
        if value is not None and search_term in normalize_for_search(value.value):
            return True
    return False


def _named_binding(store: TripleStore, subject: str, variables: List[str]) -> Binding:
    binding: Binding = {}
    for name in variables:
        if name == SUBJECT_VARIABLE:
            binding[name] = Term.uri(subject)
            continue
        predicate = turtle.PHB_NS + VARIABLE_PREDICATES.get(name, name)
        value = _first_value(store, subject, predicate)
        if value is not None:
            binding[name] = value
    return binding


def _describe_bindings(store: TripleStore, subject: str) -> List[Binding]:
    return [
        {"predicado": Term.uri(st.predicate), "valor": st.object}
        for st in store.match(subject)
        if st.predicate != turtle.RDF_TYPE
    ]


def evaluate_select(parsed: ParsedQuery, store: TripleStore) -> QueryResult:
    """
    Evaluate a SELECT query against the instances of PersonaHistoricaBoliviana.

    Two result shapes are produced depending on the projected variables:

    - ``?predicado ?valor`` only: one binding per (predicate, object) pair of
      each candidate, ``rdf:type`` excluded
    - anything else: one binding per candidate, with one entry per variable
      that has a value (absent values are omitted, never null)

    A candidate is kept when its normalized ``nombre`` or ``resumen`` contains
    the normalized search term; an empty term keeps every candidate.
    """
    candidates = store.subjects_of_type(turtle.PERSONA_CLASS, turtle.RDF_TYPE)
    if parsed.subject is not None:
        candidates = [s for s in candidates if s == parsed.subject]
    logger.debug("SELECT over %d candidate(s), variables=%s", len(candidates), parsed.variables)

    result = QueryResult(list(parsed.variables))
    for subject in candidates:
        if not _matches_search(store, subject, parsed.search_term):
            continue
        logger.debug("Match: %s", subject)
        if parsed.describe_mode:
            result.bindings.extend(_describe_bindings(store, subject))
        else:
            result.bindings.append(_named_binding(store, subject, parsed.variables))
    return result
