import base64

from phbsparql.api.literals import (
    decode_if_encoded,
    decode_quoted_segments,
    escape_literal,
    normalize_for_search,
)


def b64(text):
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def test_decode_if_encoded_decodes_base64_text():
    assert decode_if_encoded(b64("Juana Azurduy de Padilla")) == "Juana Azurduy de Padilla"


def test_decode_if_encoded_keeps_plain_text():
    assert decode_if_encoded("Juana Azurduy") == "Juana Azurduy"
    assert decode_if_encoded("") == ""


def test_decode_if_encoded_rejects_control_characters():
    encoded = base64.b64encode(b"\x01\x02abc").decode("ascii")
    assert decode_if_encoded(encoded) == encoded


def test_decode_if_encoded_rejects_invalid_utf8():
    encoded = base64.b64encode(b"\xff\xfe\xfd").decode("ascii")
    assert decode_if_encoded(encoded) == encoded


def test_decode_if_encoded_requires_length_multiple_of_four():
    assert decode_if_encoded("abcde") == "abcde"


def test_escape_literal():
    assert escape_literal('Dijo "hola"') == 'Dijo \\"hola\\"'
    assert escape_literal("a\\b") == "a\\\\b"
    assert escape_literal("línea 1\r\nlínea 2\tfin") == "línea 1 línea 2 fin"
    assert escape_literal(None) == ""


def test_decode_quoted_segments():
    triple = f'<http://x/P1> phb:nombre "{b64("Simón Bolívar")}" .'
    assert decode_quoted_segments(triple) == '<http://x/P1> phb:nombre "Simón Bolívar" .'


def test_decode_quoted_segments_escapes_decoded_quotes():
    encoded = b64('el "Mariscal"')
    triple = f'<http://x/P1> phb:resumen "{encoded}" .'
    assert decode_quoted_segments(triple) == '<http://x/P1> phb:resumen "el \\"Mariscal\\"" .'


def test_normalize_for_search():
    assert normalize_for_search("  Simón BOLÍVAR ") == "simon bolivar"
    assert normalize_for_search("Potosí") == "potosi"
    assert "bolivar" in normalize_for_search("Bolívar")
    assert normalize_for_search(None) == ""
