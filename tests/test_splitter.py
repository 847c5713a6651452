from dataclasses import replace

import pytest

from grounding.rag.splitter import (
    CategoryProvenance,
    Document,
    DocumentChunker,
    WebProvenance,
    merge_overlapping_chunks,
)


def test_text_without_sentence_breaks_uses_full_windows():
    text = "abcd " * 500
    chunker = DocumentChunker(chunk_size=1000, overlap=200, min_chunk_size=100)

    chunks = chunker.chunk(text, "https://example.com/a")

    assert len(chunks) == 3
    assert [chunk.start_offset for chunk in chunks] == [0, 800, 1600]
    assert chunks[-1].end_offset == 2500
    assert all(chunk.total_chunks == 3 for chunk in chunks)
    assert [chunk.id for chunk in chunks] == [f"https://example.com/a-chunk-{index}" for index in range(3)]


def test_chunks_prefer_sentence_boundaries():
    text = " ".join(f"Sentence number {index} talks about qubits." for index in range(80))
    chunker = DocumentChunker(chunk_size=500, overlap=100, min_chunk_size=50)

    chunks = chunker.chunk(text, "doc")

    assert len(chunks) > 1
    for chunk in chunks[:-1]:
        assert chunk.text.endswith(".")
        assert len(chunk.text) <= 500


def test_consecutive_chunks_overlap():
    text = " ".join(f"Sentence number {index} talks about qubits." for index in range(80))
    chunker = DocumentChunker(chunk_size=500, overlap=100, min_chunk_size=50)

    chunks = chunker.chunk(text, "doc")

    for previous, following in zip(chunks, chunks[1:]):
        assert following.start_offset < previous.end_offset


def test_short_text_yields_no_chunks():
    chunker = DocumentChunker(chunk_size=1000, overlap=200, min_chunk_size=100)

    assert chunker.chunk("Too short to matter.", "doc") == []
    assert chunker.chunk("", "doc") == []


def test_invalid_configuration_rejected():
    with pytest.raises(ValueError):
        DocumentChunker(chunk_size=100, overlap=100)
    with pytest.raises(ValueError):
        DocumentChunker(chunk_size=0)
    with pytest.raises(ValueError):
        DocumentChunker(chunk_size=100, overlap=-1)


def test_chunk_document_carries_provenance():
    document = Document(
        text="Quantum error correction is improving steadily. " * 10,
        url="https://nature.example/qec",
        provenance=CategoryProvenance("science"),
        title="QEC",
        source_name="Nature",
    )

    chunks = DocumentChunker().chunk_document(document)

    assert len(chunks) == 1
    assert chunks[0].category == "science"
    assert chunks[0].provenance.kind == "category"
    assert chunks[0].title == "QEC"
    assert chunks[0].source_name == "Nature"


def test_chunk_documents_flattens_in_order():
    documents = [
        Document(text="Alpha text about qubits. " * 10, url="https://a.example", provenance=WebProvenance()),
        Document(text="Beta text about qubits. " * 10, url="https://b.example", provenance=WebProvenance()),
    ]

    chunks = DocumentChunker().chunk_documents(documents)

    assert [chunk.url for chunk in chunks] == ["https://a.example", "https://b.example"]


def test_merge_folds_near_duplicate_neighbours():
    chunker = DocumentChunker(chunk_size=1000, overlap=200, min_chunk_size=10)
    text = "Qubits are fragile. Errors are common. Cooling is expensive."
    first = chunker.chunk(text, "https://a.example")[0]
    twin = replace(first, id="twin", chunk_index=1)
    other = chunker.chunk(text, "https://b.example")[0]

    merged = merge_overlapping_chunks([first, twin, other])

    assert [chunk.url for chunk in merged] == ["https://a.example", "https://b.example"]
    assert merged[0].total_chunks == 1
    assert merged[0].text == text
