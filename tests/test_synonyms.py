"""Tests for synonym expansion and the definition cache."""

from __future__ import annotations

import json
from pathlib import Path

from kingsword.core.cache import DefinitionCache
from kingsword.core.synonyms import WordDefinition, SynonymExpander


def test_expansion_applies_to_single_words_only(fake_definitions) -> None:
    expander = SynonymExpander(fake_definitions, enabled=True)

    assert expander.applies_to("foi")
    assert not expander.applies_to("la foi")
    assert not expander.applies_to("foi", requested=False)
    assert SynonymExpander(fake_definitions, enabled=False).applies_to("foi", requested=True)
    assert not SynonymExpander(fake_definitions, enabled=False).applies_to("foi")


def test_expand_dedupes_and_excludes_original(fake_definitions) -> None:
    fake_definitions.synonyms["grace"] = ["faveur", "Grâce", "faveur", "bonté", ""]
    expander = SynonymExpander(fake_definitions)

    assert expander.expand("Grace") == ["faveur", "bonté"]


def test_expand_caps_number_of_synonyms(fake_definitions) -> None:
    fake_definitions.synonyms["mot"] = [f"terme{i}" for i in range(20)]
    expander = SynonymExpander(fake_definitions, max_terms=8)

    assert len(expander.expand("mot")) == 8


def test_expand_returns_nothing_on_failure(fake_definitions) -> None:
    fake_definitions.fail = True

    assert SynonymExpander(fake_definitions).expand("foi") == []
    assert SynonymExpander(None).expand("foi") == []


def test_definitions_are_cached(fake_definitions, tmp_path: Path) -> None:
    cache = DefinitionCache(tmp_path / "definitions.json")
    expander = SynonymExpander(fake_definitions, cache=cache)

    expander.define("Foi")
    expander.define("foi")

    assert fake_definitions.recorded_calls == ["foi"]
    assert cache.get_cache_stats()["hits"] == 1


def test_definition_cache_persists_between_instances(tmp_path: Path) -> None:
    cache_file = tmp_path / "nested" / "definitions.json"
    DefinitionCache(cache_file).put("foi", WordDefinition("foi", "confiance").to_dict())

    reloaded = DefinitionCache(cache_file)

    assert reloaded.get("foi")["definition"] == "confiance"
    assert json.loads(cache_file.read_text(encoding="utf-8"))["foi"]["value"]["word"] == "foi"


def test_definition_cache_expires_entries(tmp_path: Path) -> None:
    cache = DefinitionCache(tmp_path / "definitions.json", ttl_seconds=-1)
    cache.put("foi", {"word": "foi"})

    assert cache.get("foi") is None
    assert cache.get_cache_stats()["evictions"] == 1


def test_definition_cache_ignores_corrupt_file(tmp_path: Path) -> None:
    cache_file = tmp_path / "definitions.json"
    cache_file.write_text("{not json", encoding="utf-8")

    cache = DefinitionCache(cache_file)

    assert cache.get("foi") is None
    cache.put("foi", {"word": "foi"})
    assert cache.clear() == 1


def test_word_definition_accepts_comma_separated_synonyms() -> None:
    definition = WordDefinition.from_dict({"word": "paix", "synonyms": "calme, sérénité,"})

    assert definition.synonyms == ["calme", "sérénité"]
