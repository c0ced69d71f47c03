"""
Restricted Turtle reader/writer for the local ontology file.

Only the subset of Turtle the ontology actually uses is supported: prefix
declarations, IRIs, prefixed names, literals (with language tag or datatype),
numbers, booleans and the ``;`` / ``,`` abbreviations. Blank nodes,
collections and ``@base`` are rejected.
"""

import logging
import re
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from phbsparql.api.store import Statement, Term

logger = logging.getLogger(__name__)

RDF_NS = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
XSD_NS = "http://www.w3.org/2001/XMLSchema#"
PHB_NS = "http://example.org/personasHistoricasBolivianas#"

RDF_TYPE = RDF_NS + "type"
PERSONA_CLASS = PHB_NS + "PersonaHistoricaBoliviana"

DEFAULT_PREFIXES = {"rdf": RDF_NS, "phb": PHB_NS}

BOOTSTRAP_DOCUMENT = (
    f"@prefix rdf: <{RDF_NS}> .\n"
    f"@prefix phb: <{PHB_NS}> .\n"
    "\n"
)

XSD_INTEGER = XSD_NS + "integer"
XSD_DECIMAL = XSD_NS + "decimal"
XSD_DOUBLE = XSD_NS + "double"
XSD_BOOLEAN = XSD_NS + "boolean"


class ParseError(ValueError):
    """Raised if a Turtle document does not fit the supported grammar"""


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+|\#[^\r\n]*)
  | (?P<iri><(?:[^<>"{}|^`\\\s]|\\u[0-9A-Fa-f]{4}|\\U[0-9A-Fa-f]{8})*>)
  | (?P<long_string>\"\"\"(?:[^"\\]|\\.|"(?!""))*\"\"\"|'''(?:[^'\\]|\\.|'(?!''))*''')
  | (?P<string>"(?:[^"\\\r\n]|\\.)*"|'(?:[^'\\\r\n]|\\.)*')
  | (?P<directive>@(?:prefix|base)\b)
  | (?P<langtag>@[A-Za-z]+(?:-[A-Za-z0-9]+)*)
  | (?P<datatype_mark>\^\^)
  | (?P<number>[+-]?(?:\d+\.\d+(?:[eE][+-]?\d+)?|\d+[eE][+-]?\d+|\d+))
  | (?P<pname>(?:[A-Za-z][\w\-]*(?:\.[\w\-]+)*)?:(?:[\w\-%:]+(?:\.[\w\-%:]+)*)?)
  | (?P<blank>_:[\w\-]*|\[|\]|\(|\))
  | (?P<word>[A-Za-z][\w\-]*)
  | (?P<punct>[.;,])
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPE_RE = re.compile(r"\\(?:u([0-9A-Fa-f]{4})|U([0-9A-Fa-f]{8})|(.))", re.DOTALL)
_STRING_ESCAPES = {
    "t": "\t",
    "n": "\n",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    '"': '"',
    "'": "'",
    "\\": "\\",
}
_IRI_UNSAFE_RE = re.compile(r'[<>"{}|^`\\\s]')
_SAFE_LOCAL_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_\-]*")
_INTEGER_RE = re.compile(r"[+-]?\d+")

# <subject> predicate "object" -- the object runs up to the last quote
_SIMPLIFIED_TRIPLE_RE = re.compile(
    r'\s*<([^<>\s]+)>\s+(<[^<>\s]+>|[^\s<>"]+)\s+"(.*)"\s*\.?\s*', re.DOTALL
)

Token = Tuple[str, str, int]


def _tokenize(text: str) -> Iterator[Token]:
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            line = text.count("\n", 0, pos) + 1
            snippet = text[pos : pos + 20].splitlines()[0] if text[pos:] else ""
            raise ParseError(f"Unexpected input on line {line}: '{snippet}'")
        kind = match.lastgroup
        if kind != "ws":
            yield kind, match.group(kind), text.count("\n", 0, pos) + 1
        pos = match.end()


def _unescape(value: str, strict: bool = True) -> str:
    def _replace(match: re.Match) -> str:
        code = match.group(1) or match.group(2)
        if code:
            return chr(int(code, 16))
        char = match.group(3)
        if char in _STRING_ESCAPES:
            return _STRING_ESCAPES[char]
        if strict:
            raise ParseError(f"Invalid escape sequence '\\{char}'")
        return match.group(0)

    return _ESCAPE_RE.sub(_replace, value)


class _TurtleParser:
    def __init__(self, text: str, prefixes: Optional[Dict[str, str]] = None):
        self.tokens: List[Token] = list(_tokenize(text))
        self.pos = 0
        self.prefixes: Dict[str, str] = dict(prefixes or {})

    def _peek(self) -> Optional[Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def _next(self, expected: str) -> Token:
        token = self._peek()
        if token is None:
            raise ParseError(f"Unexpected end of document, expected {expected}")
        self.pos += 1
        return token

    def _fail(self, token: Token, expected: str):
        kind, value, line = token
        if kind == "blank":
            raise ParseError(
                f"Blank nodes and collections are not supported (line {line}: '{value}')"
            )
        raise ParseError(f"Expected {expected} on line {line}, found '{value}'")

    def _expect_punct(self, char: str):
        token = self._next(f"'{char}'")
        if token[0] != "punct" or token[1] != char:
            self._fail(token, f"'{char}'")

    def parse(self) -> List[Statement]:
        statements: List[Statement] = []
        while self._peek() is not None:
            kind, value, _line = self._peek()
            if kind == "directive":
                self._directive(value)
            elif kind == "word" and value.upper() in ("PREFIX", "BASE"):
                self._sparql_directive(value.upper())
            else:
                statements.extend(self._triples())
        return statements

    def _directive(self, directive: str):
        token = self._next("directive")
        if directive == "@base":
            raise ParseError(f"@base is not supported (line {token[2]})")
        self._prefix_declaration()
        self._expect_punct(".")

    def _sparql_directive(self, keyword: str):
        token = self._next("directive")
        if keyword == "BASE":
            raise ParseError(f"BASE is not supported (line {token[2]})")
        self._prefix_declaration()

    def _prefix_declaration(self):
        name = self._next("prefix name")
        if name[0] != "pname" or not name[1].endswith(":") or name[1].count(":") != 1:
            self._fail(name, "prefix name")
        iri = self._next("namespace IRI")
        if iri[0] != "iri":
            self._fail(iri, "namespace IRI")
        self.prefixes[name[1][:-1]] = self._iri_value(iri[1])

    def _triples(self) -> List[Statement]:
        subject = self._subject()
        statements: List[Statement] = []
        while True:
            predicate = self._verb()
            while True:
                statements.append(Statement(subject, predicate, self._object()))
                token = self._peek()
                if token is not None and token[0] == "punct" and token[1] == ",":
                    self.pos += 1
                    continue
                break
            token = self._peek()
            if token is None or token[0] != "punct" or token[1] != ";":
                break
            while token is not None and token[0] == "punct" and token[1] == ";":
                self.pos += 1
                token = self._peek()
            if token is not None and token[0] == "punct" and token[1] == ".":
                break
        self._expect_punct(".")
        return statements

    def _subject(self) -> str:
        token = self._next("subject")
        if token[0] == "iri":
            return self._iri_value(token[1])
        if token[0] == "pname":
            return self._expand(token)
        self._fail(token, "subject IRI")

    def _verb(self) -> str:
        token = self._next("predicate")
        if token[0] == "word" and token[1] == "a":
            return RDF_TYPE
        if token[0] == "iri":
            return self._iri_value(token[1])
        if token[0] == "pname":
            return self._expand(token)
        self._fail(token, "predicate")

    def _object(self) -> Term:
        token = self._next("object")
        kind, value, _line = token
        if kind == "iri":
            return Term.uri(self._iri_value(value))
        if kind == "pname":
            return Term.uri(self._expand(token))
        if kind in ("string", "long_string"):
            quote_len = 3 if kind == "long_string" else 1
            text = _unescape(value[quote_len:-quote_len])
            return self._literal_suffix(text)
        if kind == "number":
            if _INTEGER_RE.fullmatch(value):
                return Term.literal(value, datatype=XSD_INTEGER)
            if "e" in value.lower():
                return Term.literal(value, datatype=XSD_DOUBLE)
            return Term.literal(value, datatype=XSD_DECIMAL)
        if kind == "word" and value in ("true", "false"):
            return Term.literal(value, datatype=XSD_BOOLEAN)
        self._fail(token, "object")

    def _literal_suffix(self, text: str) -> Term:
        token = self._peek()
        if token is not None and token[0] == "langtag":
            self.pos += 1
            return Term.literal(text, language=token[1][1:].lower())
        if token is not None and token[0] == "datatype_mark":
            self.pos += 1
            datatype = self._next("datatype IRI")
            if datatype[0] == "iri":
                return Term.literal(text, datatype=self._iri_value(datatype[1]))
            if datatype[0] == "pname":
                return Term.literal(text, datatype=self._expand(datatype))
            self._fail(datatype, "datatype IRI")
        return Term.literal(text)

    def _iri_value(self, token_value: str) -> str:
        return _unescape(token_value[1:-1])

    def _expand(self, token: Token) -> str:
        prefix, _, local = token[1].partition(":")
        if prefix not in self.prefixes:
            raise ParseError(f"Undeclared prefix '{prefix}:' on line {token[2]}")
        return self.prefixes[prefix] + local


def parse(text: str, prefixes: Optional[Dict[str, str]] = None) -> List[Statement]:
    """
    Parse a Turtle document into statements.

    Parameters:
    - text: the Turtle document
    - prefixes: prefixes known before the document's own declarations

    Raises ParseError if the document does not fit the supported grammar.
    """
    return _TurtleParser(text, prefixes).parse()


def parse_triple(text: str, prefixes: Optional[Dict[str, str]] = None) -> List[Statement]:
    """
    Parse a single triple, falling back to a simplified reading if needed.

    Free-text literals (names, summaries) sometimes contain characters that
    break strict Turtle escaping. When the strict parse fails, the text is
    matched against ``<subject> predicate "object"`` and, if that fits, taken
    as one plain-literal statement. Otherwise the strict ParseError is raised.
    """
    try:
        return parse(text, prefixes)
    except ParseError as strict_error:
        match = _SIMPLIFIED_TRIPLE_RE.fullmatch(text)
        if match is None:
            raise
        subject, predicate, obj = match.groups()
        known = dict(prefixes or {})
        if predicate.startswith("<"):
            predicate_iri = predicate[1:-1]
        elif predicate == "a":
            predicate_iri = RDF_TYPE
        else:
            prefix, sep, local = predicate.partition(":")
            if not sep or prefix not in known:
                raise strict_error
            predicate_iri = known[prefix] + local
        logger.debug("Strict parse failed (%s), using simplified triple", strict_error)
        return [Statement(subject, predicate_iri, Term.literal(_unescape(obj, strict=False)))]


def _format_iri(iri: str, prefixes: Dict[str, str]) -> str:
    for prefix, namespace in prefixes.items():
        if iri.startswith(namespace) and _SAFE_LOCAL_RE.fullmatch(iri[len(namespace) :]):
            return f"{prefix}:{iri[len(namespace):]}"
    escaped = _IRI_UNSAFE_RE.sub(lambda m: f"\\u{ord(m.group(0)):04X}", iri)
    return f"<{escaped}>"


def _format_string(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def _format_term(term: Term, prefixes: Dict[str, str]) -> str:
    if term.is_uri:
        return _format_iri(term.value, prefixes)
    text = _format_string(term.value)
    if term.language:
        return f"{text}@{term.language}"
    if term.datatype:
        return f"{text}^^{_format_iri(term.datatype, prefixes)}"
    return text


def serialize(
    statements: Iterable[Statement], prefixes: Optional[Dict[str, str]] = None
) -> str:
    """
    Write statements as Turtle, one statement per line after the prefix header.
    """
    prefixes = DEFAULT_PREFIXES if prefixes is None else prefixes
    lines = [f"@prefix {prefix}: <{namespace}> ." for prefix, namespace in prefixes.items()]
    lines.append("")
    for st in statements:
        lines.append(
            f"{_format_iri(st.subject, prefixes)} "
            f"{_format_iri(st.predicate, prefixes)} "
            f"{_format_term(st.object, prefixes)} ."
        )
    return "\n".join(lines) + "\n"
