"""
SPARQL Queries for the Bolivian historical figures client

This module contains the SPARQL queries sent to the local ontology, to
DBpedia and to a Fuseki dataset. Templates use ``str.format`` placeholders;
values must be escaped with ``escape_literal`` before substitution.
"""

ONTOLOGY_PREFIXES = """PREFIX rdf: <http://www.w3.org/1999/02/22-rdf-syntax-ns#>
PREFIX phb: <http://example.org/personasHistoricasBolivianas#>
"""

# Search the local ontology by name or summary.
# The local engine only evaluates the final literal of the first CONTAINS.
ONTOLOGY_SEARCH_QUERY = (
    ONTOLOGY_PREFIXES
    + """PREFIX rdfs: <http://www.w3.org/2000/01/rdf-schema#>

SELECT ?persona ?nombre ?descripcion ?fechaNacimiento ?fechaFallecimiento
       ?lugarNacimiento ?lugarFallecimiento ?nacionalidad ?ocupacion ?imagenReferencia
WHERE {{
  ?persona rdf:type phb:PersonaHistoricaBoliviana .
  ?persona phb:nombre ?nombre .
  OPTIONAL {{ ?persona phb:resumen ?descripcion }}
  OPTIONAL {{ ?persona phb:fechaNacimiento ?fechaNacimiento }}
  OPTIONAL {{ ?persona phb:fechaFallecimiento ?fechaFallecimiento }}
  OPTIONAL {{ ?persona phb:lugarNacimiento ?lugarNacimiento }}
  OPTIONAL {{ ?persona phb:lugarFallecimiento ?lugarFallecimiento }}
  OPTIONAL {{ ?persona phb:nacionalidad ?nacionalidad }}
  OPTIONAL {{ ?persona phb:ocupacion ?ocupacion }}
  OPTIONAL {{ ?persona phb:imagenReferencia ?imagenReferencia }}

  FILTER(
    CONTAINS(REPLACE(LCASE(?nombre), "[\\\\u0300-\\\\u036f]", ""), "{term}") ||
    CONTAINS(REPLACE(LCASE(?descripcion), "[\\\\u0300-\\\\u036f]", ""), "{term}")
  )
}}
ORDER BY ?nombre
LIMIT 50
"""
)

# Every historical figure in the local ontology
HISTORICAL_FIGURES_QUERY = (
    ONTOLOGY_PREFIXES
    + """
SELECT DISTINCT ?persona ?nombre ?resumen ?fechaNacimiento ?fechaFallecimiento
       ?lugarNacimiento ?lugarFallecimiento ?nacionalidad ?ocupacion ?imagenReferencia
WHERE {
  ?persona rdf:type phb:PersonaHistoricaBoliviana .
  OPTIONAL { ?persona phb:nombre ?nombre }
  OPTIONAL { ?persona phb:resumen ?resumen }
  OPTIONAL { ?persona phb:fechaNacimiento ?fechaNacimiento }
  OPTIONAL { ?persona phb:fechaFallecimiento ?fechaFallecimiento }
  OPTIONAL { ?persona phb:lugarNacimiento ?lugarNacimiento }
  OPTIONAL { ?persona phb:lugarFallecimiento ?lugarFallecimiento }
  OPTIONAL { ?persona phb:nacionalidad ?nacionalidad }
  OPTIONAL { ?persona phb:ocupacion ?ocupacion }
  OPTIONAL { ?persona phb:imagenReferencia ?imagenReferencia }
}
"""
)

# All predicate/value pairs of one resource
DESCRIBE_QUERY = (
    ONTOLOGY_PREFIXES
    + """
SELECT ?predicado ?valor
WHERE {{
  <{uri}> ?predicado ?valor .
}}
"""
)

CLEAR_QUERY = "DELETE WHERE { ?s ?p ?o }"

INSERT_QUERY = (
    ONTOLOGY_PREFIXES
    + """
INSERT DATA {{
  {triples}
}}"""
)

# Restricts DBpedia people to those related to Bolivia
BOLIVIA_FILTER = """
    FILTER EXISTS {
      { ?person dbo:nationality dbr:Bolivia } UNION
      { ?person dbp:nationality dbr:Bolivia } UNION
      { ?person dbo:birthPlace dbr:Bolivia } UNION
      { ?person dbp:birthPlace dbr:Bolivia } UNION
      { ?person dbo:deathPlace dbr:Bolivia } UNION
      { ?person dbp:deathPlace dbr:Bolivia } UNION
      { ?person dbo:birthPlace ?bp . FILTER(CONTAINS(LCASE(STR(?bp)), "bolivia")) } UNION
      { ?person dbo:deathPlace ?dp . FILTER(CONTAINS(LCASE(STR(?dp)), "bolivia")) } UNION
      { ?person dbo:abstract ?ab . FILTER(CONTAINS(LCASE(STR(?ab)), "bolivian") || CONTAINS(LCASE(STR(?ab)), "boliviana")) }
    }
"""

DBPEDIA_SEARCH_QUERY = """
PREFIX dbo: <http://dbpedia.org/ontology/>
PREFIX dbr: <http://dbpedia.org/resource/>
PREFIX dbp: <http://dbpedia.org/property/>
PREFIX rdfs: <http://www.w3.org/2000/01/rdf-schema#>

SELECT DISTINCT ?person ?name ?abstract ?thumbnail ?birthDate ?deathDate
       ?birthPlace ?deathPlace ?nationality ?occupation
WHERE {{
  ?person a dbo:Person ;
          rdfs:label ?name ;
          dbo:abstract ?abstract .

  {language_filter}

  FILTER(
    CONTAINS(LCASE(STR(?name)), LCASE("{term}")) ||
    CONTAINS(LCASE(STR(?abstract)), LCASE("{term}"))
  )
{bolivia_filter}
  OPTIONAL {{ ?person dbo:thumbnail ?thumbnail }}
  OPTIONAL {{ ?person dbo:birthDate ?birthDate }}
  OPTIONAL {{ ?person dbo:deathDate ?deathDate }}
  OPTIONAL {{ ?person dbo:birthPlace ?birthPlace }}
  OPTIONAL {{ ?person dbo:deathPlace ?deathPlace }}
  OPTIONAL {{ ?person dbo:nationality ?nationality }}
  OPTIONAL {{ ?person dbo:occupation ?occupation }}
}}
ORDER BY ?name
LIMIT {limit}
"""

# Labels of the places, nationality and occupation of one person
DBPEDIA_PERSON_DETAILS_QUERY = """
PREFIX dbo: <http://dbpedia.org/ontology/>
PREFIX rdfs: <http://www.w3.org/2000/01/rdf-schema#>

SELECT ?birthPlace ?birthPlaceLabel ?deathPlace ?deathPlaceLabel ?nationality
       ?nationalityLabel ?occupation ?occupationLabel ?thumbnail
WHERE {{
  OPTIONAL {{
    <{uri}> dbo:birthPlace ?birthPlace .
    OPTIONAL {{ ?birthPlace rdfs:label ?birthPlaceLabel . FILTER(LANG(?birthPlaceLabel) = "{language}") }}
  }}
  OPTIONAL {{
    <{uri}> dbo:deathPlace ?deathPlace .
    OPTIONAL {{ ?deathPlace rdfs:label ?deathPlaceLabel . FILTER(LANG(?deathPlaceLabel) = "{language}") }}
  }}
  OPTIONAL {{
    <{uri}> dbo:nationality ?nationality .
    OPTIONAL {{ ?nationality rdfs:label ?nationalityLabel . FILTER(LANG(?nationalityLabel) = "{language}") }}
  }}
  OPTIONAL {{
    <{uri}> dbo:occupation ?occupation .
    OPTIONAL {{ ?occupation rdfs:label ?occupationLabel . FILTER(LANG(?occupationLabel) = "{language}") }}
  }}
  OPTIONAL {{ <{uri}> dbo:thumbnail ?thumbnail }}
}}
LIMIT 1
"""

DBPEDIA_FIGURE_DETAILS_QUERY = """
PREFIX dbo: <http://dbpedia.org/ontology/>
PREFIX rdfs: <http://www.w3.org/2000/01/rdf-schema#>

SELECT ?name ?abstract ?thumbnail ?birthDate ?deathDate ?birthPlace ?deathPlace
       ?nationality ?occupation ?notableWork ?award ?education ?almaMater ?party ?position
WHERE {{
  <{uri}> rdfs:label ?name ;
          rdfs:comment ?abstract .
  FILTER(LANG(?name) = "{language}")
  FILTER(LANG(?abstract) = "{language}")

  OPTIONAL {{ <{uri}> dbo:thumbnail ?thumbnail }}
  OPTIONAL {{ <{uri}> dbo:birthDate ?birthDate }}
  OPTIONAL {{ <{uri}> dbo:deathDate ?deathDate }}
  OPTIONAL {{ <{uri}> dbo:birthPlace ?birthPlace }}
  OPTIONAL {{ <{uri}> dbo:deathPlace ?deathPlace }}
  OPTIONAL {{ <{uri}> dbo:nationality ?nationality }}
  OPTIONAL {{ <{uri}> dbo:occupation ?occupation }}
  OPTIONAL {{ <{uri}> dbo:notableWork ?notableWork }}
  OPTIONAL {{ <{uri}> dbo:award ?award }}
  OPTIONAL {{ <{uri}> dbo:education ?education }}
  OPTIONAL {{ <{uri}> dbo:almaMater ?almaMater }}
  OPTIONAL {{ <{uri}> dbo:party ?party }}
  OPTIONAL {{ <{uri}> dbo:position ?position }}
}}
"""

FUSEKI_STATS_QUERY = """
SELECT
  (COUNT(DISTINCT ?s) AS ?subjects)
  (COUNT(DISTINCT ?p) AS ?predicates)
  (COUNT(DISTINCT ?o) AS ?objects)
  (COUNT(*) AS ?triples)
WHERE {
  ?s ?p ?o
}
"""

FUSEKI_GRAPHS_QUERY = """
SELECT DISTINCT ?g
WHERE {
  GRAPH ?g { ?s ?p ?o }
}
ORDER BY ?g
"""

FUSEKI_PING_QUERY = "ASK { ?s ?p ?o }"


def language_filter(language: str) -> str:
    """
    Build the label/abstract language filter for a DBpedia search.

    Parameters
    ----------
    language : str
        "es", "en" or "both"

    Returns
    -------
    str
        FILTER clauses restricting ?name and ?abstract
    """
    if language == "both":
        return (
            'FILTER(LANG(?name) = "es" || LANG(?name) = "en")\n'
            '  FILTER(LANG(?abstract) = "es" || LANG(?abstract) = "en")'
        )
    return f'FILTER(LANG(?name) = "{language}")\n  FILTER(LANG(?abstract) = "{language}")'
