"""Tests for query compilation."""

from __future__ import annotations

import pytest

from kingsword.core.error_handling import EmptyQueryError
from kingsword.core.models import SearchMode, SynonymFilter
from kingsword.core.query import compile_query, searchable_text, split_terms


def test_exact_phrase_expression() -> None:
    compiled = compile_query("La foi", SearchMode.EXACT_PHRASE)

    assert compiled.fts_expression == '"La foi"'
    assert compiled.normalized_phrase == "la foi"
    assert compiled.highlight_terms() == ["La foi"]


def test_diverse_and_exact_words_expressions() -> None:
    assert compile_query("la foi", SearchMode.DIVERSE).fts_expression == '"la"* OR "foi"*'
    assert compile_query("la foi", SearchMode.EXACT_WORDS).fts_expression == '"la"* AND "foi"*'


def test_mode_accepts_strings() -> None:
    compiled = compile_query("la foi", "exact-words")

    assert compiled.mode is SearchMode.EXACT_WORDS
    assert compiled.highlight_terms() == ["la", "foi"]


def test_special_characters_split_terms() -> None:
    assert split_terms("Jean-Baptiste (prophète)") == ["Jean", "Baptiste", "prophète"]
    assert compile_query("Jean-Baptiste").fts_expression == '"Jean Baptiste"'


def test_operator_words_are_quoted() -> None:
    compiled = compile_query("foi AND NEAR", SearchMode.DIVERSE)

    assert compiled.fts_expression == '"foi"* OR "AND"* OR "NEAR"*'


@pytest.mark.parametrize("query", ['"***"', "? !", "", "   "])
def test_query_without_terms_raises(query: str) -> None:
    with pytest.raises(EmptyQueryError):
        compile_query(query)


def test_synonyms_widen_expression() -> None:
    compiled = compile_query(
        "foi", SearchMode.DIVERSE, ["croyance", "confiance totale", "Foi", "?"]
    )

    assert compiled.synonyms == ["croyance", "confiance totale"]
    assert compiled.normalized_synonyms == ["croyance", "confiance totale"]
    assert compiled.fts_expression == '("foi"*) OR "croyance"* OR "confiance totale"'
    assert compiled.highlight_terms() == ["foi", "croyance", "confiance totale"]


def test_synonym_filters() -> None:
    only_synonyms = compile_query(
        "foi", SearchMode.EXACT_PHRASE, ["croyance"], SynonymFilter.SYNONYMS_ONLY
    )
    only_original = compile_query("foi", SearchMode.EXACT_PHRASE, ["croyance"], "original")

    assert only_synonyms.fts_expression == '"croyance"*'
    assert only_synonyms.highlight_terms() == ["croyance"]
    assert only_original.fts_expression == '"foi"'
    assert only_original.highlight_terms() == ["foi"]


def test_unknown_mode_rejected() -> None:
    with pytest.raises(ValueError):
        SearchMode.parse("fuzzy")


def test_typographic_apostrophes_fold_for_fallback_terms() -> None:
    compiled = compile_query("l’agneau", SearchMode.EXACT_PHRASE, synonyms=["l‘Agneau", "brebis"])

    assert compiled.normalized_terms == ["l'agneau"]
    assert compiled.normalized_synonyms == ["brebis"]
    assert searchable_text("L’Agneau a pris le livre.") == "l'agneau a pris le livre"
