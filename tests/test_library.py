"""Tests for the library: import, listing, persistence and citations."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from kingsword.core.error_handling import ImportValidationError, IndexingError
from kingsword.core.library import Library
from kingsword.core.models import Citation, Document, GlobalSpan, SearchParams
from kingsword.core.segmenter import NOT_FOUND


def _ids(documents):
    return [document["id"] for document in documents]


def test_list_documents_newest_first(library: Library) -> None:
    documents = library.list_documents()

    assert _ids(documents) == ["65-1127", "63-0317", "47-0412"]
    assert documents[2]["version"] == "VGR"
    assert documents[2]["time"] == "Soir"
    assert documents[2]["audio_url"] == ""


@pytest.mark.parametrize(
    "filters,expected",
    [
        ({"title": "FOI"}, ["47-0412"]),
        ({"title": "sceau"}, ["63-0317"]),
        ({"title": "a dieu"}, ["65-1127"]),
        ({"city": "Houston"}, ["65-1127"]),
        ({"year": "1963"}, ["63-0317"]),
        ({"month": "4"}, ["47-0412"]),
        ({"month": "11", "day": "27"}, ["65-1127"]),
        ({"time": "Matin"}, ["63-0317"]),
        ({"version": "VGR"}, ["65-1127", "63-0317", "47-0412"]),
        ({"has_audio": True}, ["63-0317"]),
        ({"year": "1963", "city": "Houston"}, []),
    ],
)
def test_list_documents_filters(library: Library, filters, expected) -> None:
    assert _ids(library.list_documents(**filters)) == expected


def test_import_rejects_incomplete_records(library: Library, sample_records) -> None:
    del sample_records[1]["text"]

    with pytest.raises(ImportValidationError):
        library.import_documents(sample_records)
    with pytest.raises(ImportValidationError):
        Document.from_import({"title": "Sans identifiant", "text": "..."})

    assert library.document_count() == 3


def test_merge_import_replaces_matching_document(library: Library) -> None:
    library.import_documents(
        [
            {
                "id": "63-0317",
                "title": "Le Premier Sceau",
                "date": "1963-03-17",
                "city": "Jeffersonville",
                "text": "Le cheval blanc sortit.\n\nIl partit en vainqueur.",
            }
        ],
        replace_all=False,
    )

    assert library.document_count() == 3
    assert [r.paragraph_id for r in library.search(SearchParams("cheval blanc"))] == ["63-0317_1"]
    assert [r.sermon_id for r in library.search(SearchParams("foi"))] == ["65-1127", "47-0412"]
    assert library.get_document("63-0317").time == "Soir"


def test_replace_all_import_clears_library(library: Library, sample_records) -> None:
    library.import_documents(sample_records[2:])

    assert _ids(library.list_documents()) == ["65-1127"]
    assert library.search(SearchParams("agneau")) == []


def test_library_reopens_from_database(config, library: Library) -> None:
    library.close()

    reopened = Library(config=config)
    assert reopened.open()
    try:
        assert reopened.document_count() == 3
        assert len(reopened.search(SearchParams("foi"))) == 4
    finally:
        reopened.close()


def test_load_library_file(config, library_file: Path) -> None:
    library = Library(config=config)
    library.open()
    try:
        assert library.load_library_file(library_file) == 3
        assert library.status()["paragraphs"] == 9
    finally:
        library.close()


def test_load_library_file_requires_array(config, project_root: Path) -> None:
    path = project_root / "broken.json"
    path.write_text(json.dumps({"id": "x"}), encoding="utf-8")

    with pytest.raises(ImportValidationError):
        Library(config=config).load_library_file(path)
    with pytest.raises(IndexingError):
        Library(config=config).load_library_file(project_root / "missing.json")


def test_memory_library_searches_without_database(memory_library: Library) -> None:
    status = memory_library.status()

    assert not status["database_open"]
    assert status["documents"] == 3
    assert len(memory_library.search(SearchParams("foi"))) == 4


def test_locate_in_document(library: Library) -> None:
    span = library.locate_in_document("47-0412", "une ferme ASSURANCE")

    assert span
    assert library.quoted_span_text("47-0412", "une ferme ASSURANCE") == "une ferme assurance"
    assert library.locate_in_document("47-0412", "introuvable") is NOT_FOUND
    assert library.locate_in_document("00-0000", "foi") is NOT_FOUND


def test_locate_citation_prefers_recorded_paragraph(library: Library) -> None:
    library.import_documents(
        [
            {
                "id": "60-0101",
                "title": "Grâce",
                "date": "1960-01-01",
                "city": "Tucson",
                "text": "La grâce suffit.\n\nEt encore: la grâce suffit.",
            }
        ],
        replace_all=False,
    )

    in_second = Citation(sermon_id="60-0101", quoted_text="la grâce suffit", paragraph_index=2)
    anywhere = Citation(sermon_id="60-0101", quoted_text="la grâce suffit")
    wrong_paragraph = Citation(sermon_id="60-0101", quoted_text="Et encore", paragraph_index=1)

    assert library.locate_citation(in_second) == GlobalSpan(10, 14)
    assert library.locate_citation(anywhere) == GlobalSpan(0, 4)
    assert library.locate_citation(wrong_paragraph) == GlobalSpan(6, 8)
    assert library.locate_citation(Citation(sermon_id="nope", quoted_text="grâce")) is NOT_FOUND
