import asyncio

from conftest import DEST_DB, SOURCE_ID, FakeWorkspace

from shortform.services.generation.idempotency import IdempotencyGuard


def test_unprocessed_source_is_not_skipped():
    ws = FakeWorkspace()
    guard = IdempotencyGuard(ws, DEST_DB)
    assert asyncio.run(guard.should_skip(SOURCE_ID)) is False
    assert ws.queries == [(DEST_DB, {"property": "E-mails", "relation": {"contains": SOURCE_ID}})]


def test_processed_source_is_skipped():
    ws = FakeWorkspace()
    asyncio.run(ws.create_page(DEST_DB, {
        "Title": {"title": [{"text": {"content": "CONCEPT #1: x"}}]},
        "E-mails": {"relation": [{"id": SOURCE_ID}]},
    }, []))
    guard = IdempotencyGuard(ws, DEST_DB)
    assert asyncio.run(guard.should_skip(SOURCE_ID)) is True
    assert asyncio.run(guard.should_skip("another-source")) is False


def test_custom_relation_property():
    ws = FakeWorkspace()
    guard = IdempotencyGuard(ws, DEST_DB, relation_property="Source")
    asyncio.run(guard.should_skip(SOURCE_ID))
    assert ws.queries[0][1]["property"] == "Source"
