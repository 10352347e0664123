from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError
from practice.clients.object_store import ObjectInfo, S3ObjectStore
from practice.errors import StorageError


class FakeS3Client:
    """Records calls and replays canned ``list_objects_v2`` pages."""

    def __init__(self, pages):
        self.pages = list(pages)
        self.list_calls = []
        self.puts = []

    async def list_objects_v2(self, **params):
        self.list_calls.append(params)
        return self.pages.pop(0)

    async def put_object(self, **params):
        self.puts.append(params)
        if params["Key"].endswith("denied.json"):
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "PutObject")


def s3_store(client: FakeS3Client) -> S3ObjectStore:
    store = S3ObjectStore(bucket="test-bucket", region="ap-northeast-1")
    store._client = client
    return store


@pytest.mark.asyncio
async def test_list_page_returns_keys_and_continuation_token():
    client = FakeS3Client(
        [
            {
                "Contents": [
                    {
                        "Key": "log/u/task_1/2025-04-01T09:00:00.000000Z_run_a.json",
                        "LastModified": datetime(2030, 1, 1, tzinfo=timezone.utc),
                        "Size": 10,
                    }
                ],
                "IsTruncated": True,
                "NextContinuationToken": "tok-2",
            },
            {"Contents": [], "IsTruncated": False},
        ]
    )
    store = s3_store(client)

    first = await store.list_page("log/u/task_1/")
    second = await store.list_page("log/u/task_1/", first.next_token)

    assert first.objects == [ObjectInfo(key="log/u/task_1/2025-04-01T09:00:00.000000Z_run_a.json")]
    assert first.next_token == "tok-2"
    assert second.objects == []
    assert second.next_token is None
    assert client.list_calls == [
        {"Bucket": "test-bucket", "Prefix": "log/u/task_1/"},
        {"Bucket": "test-bucket", "Prefix": "log/u/task_1/", "ContinuationToken": "tok-2"},
    ]


@pytest.mark.asyncio
async def test_put_sends_content_type_and_maps_client_errors():
    client = FakeS3Client([])
    store = s3_store(client)

    await store.put("log/u/task_1/ok.json", b"{}", "application/json")
    assert client.puts[0]["ContentType"] == "application/json"
    assert client.puts[0]["Bucket"] == "test-bucket"

    with pytest.raises(StorageError) as exc_info:
        await store.put("log/u/task_1/denied.json", b"{}", "application/json")
    assert exc_info.value.details == {"key": "log/u/task_1/denied.json"}
