"""Shared pytest fixtures for King's Sword tests."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import pytest
import yaml

from kingsword.core.error_handling import ExpansionFailure
from kingsword.core.library import Library
from kingsword.core.settings import load_config
from kingsword.core.synonyms import WordDefinition

SAMPLE_RECORDS: List[Dict[str, Any]] = [
    {
        "id": "47-0412",
        "title": "La Foi est une ferme assurance",
        "date": "1947-04-12",
        "city": "Oakland",
        "text": (
            "\n\nBonsoir mes amis.\n\n"
            "La foi est une ferme assurance des choses qu'on espère.\n\n"
            "Jésus-Christ est le même hier, aujourd'hui et éternellement.\n\n"
            "L'agneau de Dieu ôte le péché du monde."
        ),
    },
    {
        "id": "63-0317",
        "title": "Le Premier Sceau",
        "date": "1963-03-17",
        "city": "Jeffersonville",
        "time": "Matin",
        "audio_url": "https://example.org/audio/63-0317.mp3",
        "text": (
            "La foi parfaite vient par l'écoute.\n\n"
            "L'Agneau a pris le livre.\n\n"
            "Et la foi de l'Épouse sera éprouvée."
        ),
    },
    {
        "id": "65-1127",
        "title": "Essayer de rendre service à Dieu",
        "date": "1965-11-27",
        "city": "Houston",
        "text": (
            "Un homme de foi ne craint pas.\n\n"
            "Le prophète Élie était un homme de croyance."
        ),
    },
]


@dataclass
class FakeDefinitionService:
    """Deterministic stand-in for the dictionary client used in tests."""

    available: bool = True
    synonyms: Dict[str, List[str]] = field(default_factory=dict)
    fail: bool = False
    recorded_calls: List[str] = field(default_factory=list)

    def is_available(self) -> bool:
        return self.available

    def lookup(self, word: str) -> WordDefinition:
        self.recorded_calls.append(word)
        if self.fail:
            raise ExpansionFailure(f"lookup of {word!r} failed")
        return WordDefinition(
            word=word,
            definition=f"Definition of {word}",
            synonyms=list(self.synonyms.get(word, [])),
            etymology=None,
        )


@pytest.fixture()
def project_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolated project root for tests."""
    monkeypatch.setenv("KINGSWORD_PROJECT_ROOT", str(tmp_path))
    monkeypatch.delenv("KINGSWORD_DATA_DIR", raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    return tmp_path


@pytest.fixture()
def sample_records() -> List[Dict[str, Any]]:
    return json.loads(json.dumps(SAMPLE_RECORDS))


@pytest.fixture()
def library_file(project_root: Path, sample_records: List[Dict[str, Any]]) -> Path:
    """The sample corpus as an importable JSON file."""
    path = project_root / "library.json"
    path.write_text(json.dumps(sample_records, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture()
def config(project_root: Path) -> Dict[str, Any]:
    return load_config(overrides={"data_dir": str(project_root / "data")})


@pytest.fixture()
def minimal_config(project_root: Path) -> Path:
    """Write a configuration file pointing at a temporary data directory."""
    payload: Dict[str, object] = {
        "data_dir": str(project_root / "data"),
        "synonyms": {"enabled": False},
        "dictionary": {"enabled": False},
    }
    config_path = project_root / "config.yaml"
    config_path.write_text(yaml.safe_dump(payload), encoding="utf-8")
    return config_path


@pytest.fixture()
def fake_definitions() -> FakeDefinitionService:
    return FakeDefinitionService(synonyms={"foi": ["croyance", "Foi", "confiance"]})


@pytest.fixture()
def library(config: Dict[str, Any], sample_records, fake_definitions) -> Library:
    """Opened library with the sample corpus imported."""
    lib = Library(config=config, definition_service=fake_definitions)
    assert lib.open()
    lib.import_documents(sample_records)
    yield lib
    lib.close()


@pytest.fixture()
def indexed_library(library: Library) -> Library:
    if not library.store.fts_ready:
        pytest.skip("SQLite was built without FTS5")
    return library


@pytest.fixture()
def memory_library(config: Dict[str, Any], sample_records, fake_definitions) -> Library:
    """Library that never opened its database and searches in memory only."""
    lib = Library(config=config, definition_service=fake_definitions)
    lib.import_documents(sample_records)
    return lib
