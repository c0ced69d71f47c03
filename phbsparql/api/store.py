from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Union

URI = "uri"
LITERAL = "literal"

_RDF_TYPE = "http://www.w3.org/1999/02/22-rdf-syntax-ns#type"


class InvalidStatementError(ValueError):
    """Raised if a statement lacks a subject, predicate or object"""


@dataclass(frozen=True)
class Term:
    """
    An RDF term in object position (or a bound query value).

    ``type`` is either ``"uri"`` or ``"literal"``; literals may carry a
    datatype IRI or a language tag, never both.
    """

    value: str
    type: str = LITERAL
    datatype: Optional[str] = None
    language: Optional[str] = None

    @classmethod
    def uri(cls, value: str) -> "Term":
        return cls(value, URI)

    @classmethod
    def literal(
        cls, value: str, datatype: str | None = None, language: str | None = None
    ) -> "Term":
        return cls(value, LITERAL, datatype, language)

    @property
    def is_uri(self) -> bool:
        return self.type == URI

    @property
    def is_literal(self) -> bool:
        return self.type == LITERAL

    def to_json(self) -> dict:
        """Return the SPARQL-JSON representation of this term."""
        result = {"value": self.value, "type": self.type}
        if self.datatype:
            result["datatype"] = self.datatype
        if self.language:
            result["xml:lang"] = self.language
        return result


@dataclass(frozen=True)
class Statement:
    subject: str
    predicate: str
    object: Term


ObjectPattern = Union[Term, str, None]


def _object_matches(term: Term, pattern: ObjectPattern) -> bool:
    if pattern is None:
        return True
    if isinstance(pattern, Term):
        return term == pattern
    return term.value == pattern


class TripleStore:
    """
    In-memory, mutable set of statements for a single dataset.

    Statements keep their insertion order; adding a statement that is
    already present has no effect.
    """

    def __init__(self, statements: Iterable[Statement] = ()):
        self._statements: dict[Statement, None] = {}
        self.add_statements(statements)

    def add_statement(self, statement: Statement) -> bool:
        """
        Insert a statement.

        Returns:
        - True if the statement was new, False if it was already stored

        Raises InvalidStatementError if subject, predicate or object is missing.
        """
        if (
            statement is None
            or not statement.subject
            or not statement.predicate
            or statement.object is None
            or statement.object.value is None
        ):
            raise InvalidStatementError(f"Incomplete statement: {statement!r}")
        if statement in self._statements:
            return False
        self._statements[statement] = None
        return True

    def add_statements(self, statements: Iterable[Statement]) -> int:
        added = 0
        for statement in statements:
            if self.add_statement(statement):
                added += 1
        return added

    def match(
        self,
        subject: str | None = None,
        predicate: str | None = None,
        obj: ObjectPattern = None,
    ) -> List[Statement]:
        """
        Return all statements matching the given pattern.

        Parameters:
        - subject: subject IRI, or None for any subject
        - predicate: predicate IRI, or None for any predicate
        - obj: a Term (compared exactly), a plain string (compared against the
          term value) or None for any object
        """
        return [
            st
            for st in self._statements
            if (subject is None or st.subject == subject)
            and (predicate is None or st.predicate == predicate)
            and _object_matches(st.object, obj)
        ]

    def remove_all(
        self,
        subject: str | None = None,
        predicate: str | None = None,
        obj: ObjectPattern = None,
    ) -> int:
        """Delete every statement matching the pattern; returns how many were removed."""
        doomed = self.match(subject, predicate, obj)
        for st in doomed:
            del self._statements[st]
        return len(doomed)

    def subjects_of_type(self, class_iri: str, type_predicate: str = _RDF_TYPE) -> List[str]:
        """Distinct instances of ``class_iri``, excluding the class itself."""
        subjects: dict[str, None] = {}
        for st in self.match(None, type_predicate, class_iri):
            if st.subject != class_iri:
                subjects[st.subject] = None
        return list(subjects)

    def __len__(self) -> int:
        return len(self._statements)

    def __iter__(self) -> Iterator[Statement]:
        return iter(list(self._statements))

    def __contains__(self, statement: object) -> bool:
        return statement in self._statements
