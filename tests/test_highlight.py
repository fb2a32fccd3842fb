"""Tests for highlight patterns and snippet extraction."""

from __future__ import annotations

from kingsword.core.highlight import (
    build_accent_insensitive_pattern,
    build_multi_word_pattern,
    extract_snippet,
    mark_matches,
    render_engine_snippet,
    strip_markers,
)


def test_accent_insensitive_pattern_matches_accented_text() -> None:
    pattern = build_accent_insensitive_pattern("Eternellement")

    match = pattern.search("hier, aujourd'hui et ÉTERNELLEMENT.")

    assert match is not None
    assert match.group(0) == "ÉTERNELLEMENT"


def test_phrase_pattern_allows_line_breaks_and_punctuation_between_words() -> None:
    pattern = build_accent_insensitive_pattern("foi est")

    assert pattern.search("La foi\nest une ferme assurance").group(0) == "foi\nest"
    assert pattern.search("la foi, est-ce") is not None


def test_exact_word_guards_treat_accented_letters_as_word_characters() -> None:
    pattern = build_accent_insensitive_pattern("pêche", exact_word=True)

    assert pattern.search("le pêcheur") is None
    assert pattern.search("le pêché du monde").group(0) == "pêché"


def test_multi_word_pattern_marks_each_term() -> None:
    pattern = build_multi_word_pattern("agneau Dieu")

    assert mark_matches("agneau de Dieu", pattern) == "<mark>agneau</mark> de <mark>Dieu</mark>"


def test_multi_word_pattern_joins_adjacent_terms_into_one_match() -> None:
    pattern = build_multi_word_pattern(["grace", "paix"])

    assert mark_matches("la grâce, paix", pattern) == "la <mark>grâce, paix</mark>"


def test_multi_word_pattern_prefers_longest_term() -> None:
    pattern = build_multi_word_pattern(["agneau", "agneaux"])

    assert mark_matches("les agneaux", pattern) == "les <mark>agneaux</mark>"


def test_multi_word_pattern_without_terms() -> None:
    assert build_multi_word_pattern("") is None
    assert build_multi_word_pattern(["?", " "]) is None


def test_mark_matches_escapes_html() -> None:
    pattern = build_accent_insensitive_pattern("dieu")

    assert mark_matches("<b>Dieu</b>", pattern) == "&lt;b&gt;<mark>Dieu</mark>&lt;/b&gt;"


def test_extract_snippet_windows_long_paragraph() -> None:
    content = "a" * 500 + "cible" + "b" * 495
    pattern = build_accent_insensitive_pattern("cible")

    snippet = extract_snippet(content, pattern, before=150, after=450)

    assert snippet.startswith("...")
    assert snippet.endswith("...")
    assert "<mark>cible</mark>" in snippet
    assert len(strip_markers(snippet)) <= 150 + 450 + len("cible") + 6


def test_extract_snippet_short_paragraph_has_no_ellipsis() -> None:
    pattern = build_accent_insensitive_pattern("foi")

    assert extract_snippet("La foi vient.", pattern) == "La <mark>foi</mark> vient."


def test_extract_snippet_without_match_uses_leading_excerpt() -> None:
    pattern = build_accent_insensitive_pattern("absent")

    snippet = extract_snippet("z" * 700, pattern, max_chars=600)

    assert snippet == "z" * 600 + "..."


def test_render_engine_snippet_escapes_then_marks() -> None:
    rendered = render_engine_snippet("...a <b> \x02foi\x03 & co", "\x02", "\x03")

    assert rendered == "...a &lt;b&gt; <mark>foi</mark> &amp; co"
