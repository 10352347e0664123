import json
from datetime import datetime, timedelta, timezone

import pytest
from practice.errors import NotFound, ParseError, StorageError
from practice.services.activity_log import ActivityLogStore, BackgroundAppender
from practice.services.context import Context
from practice.services.envelopes import EnvelopeBuilder

from tests.doubles import InMemoryObjectStore


def frozen_builder(instant: datetime, ids):
    it = iter(ids)
    return EnvelopeBuilder(clock=lambda: instant, id_factory=lambda: next(it))


@pytest.mark.asyncio
async def test_append_writes_json_under_partition_key(log_store, object_store, builder, context):
    envelope = builder.build_run_envelope(context, "int main(){return 0;}", "", "")

    key = await log_store.append(envelope)

    assert key == "log/user_001/task_1/2025-04-01T09:00:00.000000Z_run_id0001.json"
    body, content_type = object_store.objects[key]
    assert content_type == "application/json"
    assert json.loads(body)["code"] == "int main(){return 0;}"


@pytest.mark.asyncio
async def test_append_reports_storage_failure(log_store, object_store, builder, context):
    object_store.fail_puts = True
    with pytest.raises(StorageError):
        await log_store.append(builder.build_run_envelope(context, "x", "", ""))
    assert object_store.objects == {}


@pytest.mark.asyncio
async def test_list_partition_exhausts_pagination(builder, context):
    store = InMemoryObjectStore(page_size=2)
    log_store = ActivityLogStore(store, prefix="log")
    for i in range(5):
        await log_store.append(builder.build_run_envelope(context, f"v{i}", "", ""))
    await log_store.append(
        builder.build_run_envelope(context.model_copy(update={"task_number": 2}), "other", "", "")
    )

    keys = await log_store.list_partition("user_001", 1)

    assert len(keys) == 5
    assert all(k.startswith("log/user_001/task_1/") for k in keys)
    assert store.list_calls == 3


@pytest.mark.asyncio
async def test_list_partition_empty(log_store):
    assert await log_store.list_partition("user_001", 1) == []


@pytest.mark.asyncio
async def test_resolve_latest_empty_partition_is_not_found(log_store):
    with pytest.raises(NotFound):
        await log_store.resolve_latest("user_001", 1)


@pytest.mark.asyncio
async def test_resolve_latest_uses_timestamp_not_append_order(log_store, context):
    base = datetime(2025, 4, 1, 9, 0, tzinfo=timezone.utc)
    newer = frozen_builder(base + timedelta(minutes=5), ["b"]).build_run_envelope(
        context, "newer", "", ""
    )
    older = frozen_builder(base, ["a"]).build_run_envelope(context, "older", "", "")

    await log_store.append(newer)
    await log_store.append(older)

    assert await log_store.resolve_latest("user_001", 1) == "newer"


@pytest.mark.asyncio
async def test_resolve_latest_read_after_write(log_store, builder, context, advice_result):
    await log_store.append(builder.build_run_envelope(context, "first", "", ""))
    await log_store.append(
        builder.build_advice_envelope(context, "second", advice_result, 1)
    )
    assert await log_store.resolve_latest("user_001", 1) == "second"

    await log_store.append(builder.build_save_envelope(context, "cp", {"code": "third"}))
    assert await log_store.resolve_latest("user_001", 1) == "third"


@pytest.mark.asyncio
async def test_partitions_are_isolated(log_store, builder, context):
    await log_store.append(builder.build_run_envelope(context, "task one", "", ""))
    other_user = Context(user_id="user_002", username="user2", task_number=1)
    await log_store.append(builder.build_run_envelope(other_user, "not mine", "", ""))

    assert await log_store.resolve_latest("user_001", 1) == "task one"
    with pytest.raises(NotFound):
        await log_store.resolve_latest("user_001", 2)


@pytest.mark.asyncio
async def test_same_instant_envelopes_get_distinct_keys(log_store, object_store, context):
    instant = datetime(2025, 4, 1, 9, 0, tzinfo=timezone.utc)
    builder = frozen_builder(instant, ["aaaa", "ffff"])
    first = builder.build_run_envelope(context, "first", "", "")
    second = builder.build_run_envelope(context, "second", "", "")
    assert first.timestamp == second.timestamp

    # Appended in reverse; the greater key wins the tie regardless
    key_second = await log_store.append(second)
    key_first = await log_store.append(first)

    assert key_first != key_second
    assert len(object_store.objects) == 2
    assert key_second > key_first
    assert await log_store.resolve_latest("user_001", 1) == "second"


@pytest.mark.asyncio
async def test_round_trip_is_lossless(log_store, object_store, builder, context, advice_result):
    code = 'int main(){\n  printf("こんにちは\\n");\n  return 0;\n}'
    run_key = await log_store.append(
        builder.build_run_envelope(context, code, "こんにちは\n", "warning: x\n")
    )
    advice_key = await log_store.append(
        builder.build_advice_envelope(context, code, advice_result, 3)
    )

    run = json.loads(await object_store.get(run_key))
    assert run["code"] == code
    assert run["stdout"] == "こんにちは\n"
    assert run["stderr"] == "warning: x\n"

    advice = json.loads(await object_store.get(advice_key))
    assert advice["code"] == code
    assert advice["advice"] == advice_result["advice"]
    assert advice["processing_structure"] == advice_result["processing_structure"]
    assert advice["estimated_stage"] == advice_result["estimated_stage"]
    assert advice["hintsUsed"] == 3


@pytest.mark.asyncio
async def test_resolve_latest_corrupt_object_is_parse_error(log_store, object_store, builder, context):
    await log_store.append(builder.build_run_envelope(context, "ok", "", ""))
    await object_store.put(
        "log/user_001/task_1/2099-01-01T00:00:00.000000Z_run_zzz.json", b"{not json", "application/json"
    )

    with pytest.raises(ParseError) as exc_info:
        await log_store.resolve_latest("user_001", 1)
    assert exc_info.value.code == "LOG_CORRUPT"


@pytest.mark.asyncio
async def test_resolve_latest_missing_code_is_parse_error(log_store, object_store):
    await object_store.put(
        "log/user_001/task_1/2099-01-01T00:00:00.000000Z_run_zzz.json",
        json.dumps({"event": "run"}).encode(),
        "application/json",
    )
    with pytest.raises(ParseError):
        await log_store.resolve_latest("user_001", 1)


@pytest.mark.asyncio
async def test_resolve_latest_skips_keys_without_timestamp(log_store, object_store, builder, context):
    await log_store.append(builder.build_run_envelope(context, "ordered", "", ""))
    await object_store.put(
        "log/user_001/task_1/zzz-legacy.json", json.dumps({"code": "legacy"}).encode(), "application/json"
    )
    assert await log_store.resolve_latest("user_001", 1) == "ordered"


@pytest.mark.asyncio
async def test_read_path_storage_failures_surface_as_not_found(log_store, object_store, builder, context):
    await log_store.append(builder.build_run_envelope(context, "x", "", ""))

    object_store.fail_lists = True
    with pytest.raises(NotFound):
        await log_store.resolve_latest("user_001", 1)

    object_store.fail_lists = False
    object_store.fail_gets = True
    with pytest.raises(NotFound):
        await log_store.resolve_latest("user_001", 1)


@pytest.mark.asyncio
async def test_background_appender_swallows_failures(log_store, object_store, builder, context):
    appender = BackgroundAppender(log_store)
    object_store.fail_puts = True

    assert await appender.append(builder.build_run_envelope(context, "x", "", "")) is None
    assert appender.failed == 1

    object_store.fail_puts = False
    key = await appender.append(builder.build_run_envelope(context, "y", "", ""))
    assert key in object_store.objects
    assert appender.appended == 1


def test_ordering_key_reads_timestamp_from_file_name():
    key = "log/u/task_1/2025-04-01T09:00:00.000000Z_save_cp.json"
    assert ActivityLogStore.ordering_key(key) == ("2025-04-01T09:00:00.000000Z", key)
    assert ActivityLogStore.ordering_key("log/u/task_1/notes.json") is None