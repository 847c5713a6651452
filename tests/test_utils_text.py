from grounding.utils.text import collapse_whitespace, normalise_paragraphs, query_terms


def test_query_terms_lowercases_and_drops_short_tokens():
    assert query_terms("The AI of Quantum Computing") == ["the", "quantum", "computing"]


def test_collapse_whitespace():
    assert collapse_whitespace("  a \n\t b  ") == "a b"
    assert collapse_whitespace("") == ""


def test_normalise_paragraphs_keeps_single_blank_line():
    text = "First  line\r\n\r\n\r\nSecond   para\n  \nThird"

    assert normalise_paragraphs(text) == "First line\n\nSecond para\n\nThird"
