"""
Tests for the per-block LLM extractor.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from docuspec.config.errors import LLMError
from docuspec.domains.parsing.models import ParsedBlock

from .contracts import BlockExtractor, ExtractionTransport
from .llm_extractor import (
    SYSTEM_PROMPT,
    LLMBlockExtractor,
    build_user_prompt,
    parse_extraction_response,
)
from .models import BlockForExtraction


def make_item(
    block_id: str,
    content: str = "Кирпич 100 шт",
    section: str | None = None,
) -> BlockForExtraction:
    """Queue entry for a TEXT block."""
    return BlockForExtraction(
        block=ParsedBlock(uid=f"UID-{block_id}", content=content),
        page_no=1,
        block_id=block_id,
        section_context=section,
    )


def response(*items: dict) -> str:
    """Serialize an LLM response body."""
    return json.dumps({"items": list(items)}, ensure_ascii=False)


BRICK = {
    "raw_name": "Кирпич",
    "canonical_name": "Кирпич керамический",
    "quantity": 100,
    "unit": "шт",
    "source_snippet": "Кирпич 100 шт",
    "confidence": 0.85,
}


@pytest.fixture
def transport() -> AsyncMock:
    """Transport returning a single grounded item."""
    mock = AsyncMock()
    mock.complete_json.return_value = response(BRICK)
    return mock


# --- Prompt Tests ---


def test_build_user_prompt_with_section() -> None:
    """Test page, block id, section and content are included."""
    prompt = build_user_prompt(make_item("b1", section="Ведомость материалов"))
    assert prompt == (
        "Page: 1\nBlock ID: UID-b1\nSection: Ведомость материалов\n\nContent:\nКирпич 100 шт"
    )


def test_build_user_prompt_without_section() -> None:
    """Test the section line is omitted when there is no context."""
    prompt = build_user_prompt(make_item("b1"))
    assert "Section:" not in prompt
    assert prompt.endswith("\nContent:\nКирпич 100 шт")


def test_system_prompt_requires_grounding() -> None:
    """Test the instruction asks for snippets and JSON items."""
    assert "source_snippet" in SYSTEM_PROMPT
    assert '"items"' in SYSTEM_PROMPT


# --- Response Parsing Tests ---


def test_parse_response_drops_ungrounded_items() -> None:
    """Test items without a non-blank snippet are discarded."""
    text = response(
        BRICK,
        {"raw_name": "Цемент", "source_snippet": "   "},
        {"raw_name": "Песок"},
    )
    items = parse_extraction_response(text)
    assert [item.raw_name for item in items] == ["Кирпич"]


def test_parse_response_backfills_canonical_key() -> None:
    """Test keys come from the canonical name, then the raw name."""
    text = response(
        BRICK,
        {"raw_name": "Бетон В25", "source_snippet": "Бетон В25"},
        {"raw_name": "Сталь", "canonical_key": "stal_c245", "source_snippet": "Сталь"},
    )
    items = parse_extraction_response(text)
    assert items[0].canonical_key == "kirpich_keramicheskiy"
    assert items[1].canonical_key == "beton_v25"
    assert items[2].canonical_key == "stal_c245"


def test_parse_response_accepts_russian_quantity() -> None:
    """Test string quantities in Russian format are coerced."""
    items = parse_extraction_response(
        response({"raw_name": "Бетон", "quantity": "1 692,9", "source_snippet": "Бетон"})
    )
    assert items[0].quantity == 1692.9


def test_parse_response_rejects_blank_name() -> None:
    """Test a whitespace-only name fails validation instead of keying as empty."""
    with pytest.raises(ValueError):
        parse_extraction_response(response({"raw_name": "   ", "source_snippet": "x"}))


def test_raw_name_is_stripped() -> None:
    """Test surrounding whitespace is removed from names."""
    (item,) = parse_extraction_response(response({"raw_name": " Бетон ", "source_snippet": "x"}))
    assert item.raw_name == "Бетон"
    assert item.canonical_key == "beton"


def test_parse_response_with_surrounding_text() -> None:
    """Test JSON wrapped in a code fence is recovered."""
    text = f"```json\n{response(BRICK)}\n```"
    assert len(parse_extraction_response(text)) == 1


def test_parse_response_invalid() -> None:
    """Test unparseable or schema-violating output raises."""
    with pytest.raises(ValueError):
        parse_extraction_response("no json here")
    with pytest.raises(ValueError):
        parse_extraction_response('{"items": [{"raw_name": ""}]}')


# --- Extractor Tests ---


def test_extractor_satisfies_contract(transport: AsyncMock) -> None:
    """Test the extractor implements the pipeline contract."""
    assert isinstance(LLMBlockExtractor(transport), BlockExtractor)


async def test_extract_block(transport: AsyncMock) -> None:
    """Test one call per block with the configured temperature and timeout."""
    extractor = LLMBlockExtractor(transport, temperature=0.1, timeout_seconds=60.0)
    items = await extractor.extract_block(make_item("b1"))

    assert len(items) == 1
    assert items[0].quantity == 100.0
    transport.complete_json.assert_awaited_once()
    args = transport.complete_json.call_args
    assert args.args[0] == SYSTEM_PROMPT
    assert args.kwargs == {"temperature": 0.1, "timeout": 60.0}


async def test_extract_block_transport_failure(transport: AsyncMock) -> None:
    """Test a transport error yields no facts."""
    transport.complete_json.side_effect = LLMError("upstream down")
    extractor = LLMBlockExtractor(transport)
    assert await extractor.extract_block(make_item("b1")) == []


async def test_extract_block_invalid_json(transport: AsyncMock) -> None:
    """Test malformed model output yields no facts."""
    transport.complete_json.return_value = "I could not find any materials."
    extractor = LLMBlockExtractor(transport)
    assert await extractor.extract_block(make_item("b1")) == []


async def test_extract_batch_progress(transport: AsyncMock) -> None:
    """Test progress is reported after every block."""
    progress: list[tuple[int, int]] = []
    extractor = LLMBlockExtractor(transport)

    results = await extractor.extract_batch(
        [make_item("b1"), make_item("b2")],
        on_progress=lambda done, total: progress.append((done, total)),
    )

    assert list(results) == ["b1", "b2"]
    assert progress == [(1, 2), (2, 2)]


async def test_extract_batch_isolates_failures(transport: AsyncMock) -> None:
    """Test a failed block does not stop the rest of the batch."""
    transport.complete_json.side_effect = [LLMError("timeout"), response(BRICK)]
    extractor = LLMBlockExtractor(transport)

    results = await extractor.extract_batch([make_item("b1"), make_item("b2")])

    assert results["b1"] == []
    assert len(results["b2"]) == 1


async def test_extract_batch_empty(transport: AsyncMock) -> None:
    """Test an empty batch makes no calls."""
    extractor = LLMBlockExtractor(transport)
    assert await extractor.extract_batch([]) == {}
    transport.complete_json.assert_not_awaited()


async def test_extract_batch_concurrent_keeps_input_order() -> None:
    """Test bounded concurrency returns results in input order."""

    async def complete_json(system: str, user: str, **kwargs: object) -> str:
        name = user.rsplit("\n", 1)[-1]
        return response({"raw_name": name, "source_snippet": name})

    transport = AsyncMock()
    transport.complete_json.side_effect = complete_json
    progress: list[tuple[int, int]] = []
    extractor = LLMBlockExtractor(transport, max_concurrent=3)

    blocks = [make_item(f"b{i}", content=f"Материал {i}") for i in range(5)]
    results = await extractor.extract_batch(
        blocks, on_progress=lambda done, total: progress.append((done, total))
    )

    assert list(results) == [f"b{i}" for i in range(5)]
    assert results["b3"][0].raw_name == "Материал 3"
    assert progress[-1] == (5, 5)
    assert transport.complete_json.await_count == 5


async def test_iter_extract_is_lazy(transport: AsyncMock) -> None:
    """Test stopping iteration stops further calls."""
    extractor = LLMBlockExtractor(transport)

    async for block_id, items in extractor.iter_extract([make_item("b1"), make_item("b2")]):
        assert block_id == "b1"
        assert len(items) == 1
        break

    assert transport.complete_json.await_count == 1


def test_transport_contract() -> None:
    """Test a plain class with complete_json satisfies the transport contract."""

    class StaticTransport:
        async def complete_json(self, system, user, *, temperature=0.1, timeout=None):
            return response()

    assert isinstance(StaticTransport(), ExtractionTransport)
