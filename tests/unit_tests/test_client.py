import aiohttp
import pytest

from attachgate.client import LIST_FIELDS, AttachmentClient
from attachgate.errors import ServiceError
from attachgate.models import LocalFile
from tests.unit_tests.fake_service import FakeAttachmentStore, fake_store  # noqa: F401


@pytest.mark.asyncio
async def test_list_sends_query_and_token(fake_store: FakeAttachmentStore):
    fake_store.add("wafer#$klarf.DOLI")
    fake_store.add("report.pdf")
    fake_store.add("elsewhere.pdf", table_sys_id="other")

    async with AttachmentClient(fake_store.url, session_token="tok") as client:
        records = await client.list_attachments("incident", "rec1")

    assert sorted(r.stored_name for r in records) == ["report.pdf", "wafer#$klarf.DOLI"]
    request = fake_store.requests[0]
    assert request.query == {
        "sysparm_query": "table_sys_id=rec1^table_name=incident",
        "sysparm_fields": LIST_FIELDS,
        "sysparm_display_value": "true",
    }
    assert request.token == "tok"
    assert request.accept == "application/json"


@pytest.mark.asyncio
async def test_list_failure_raises_service_error(fake_store: FakeAttachmentStore):
    fake_store.failures["list"] = (500, '{"error":{"message":"boom"}}')

    async with AttachmentClient(fake_store.url) as client:
        with pytest.raises(ServiceError) as exc:
            await client.list_attachments("incident", "rec1")

    assert exc.value.status == 500
    assert str(exc.value) == '500: {"error":{"message":"boom"}}'


@pytest.mark.asyncio
async def test_upload_reserved_file_is_encoded_and_disguised(fake_store: FakeAttachmentStore):
    file = LocalFile.from_bytes("wafer.klarf", b"\x00binary klarf\xff", content_type="x-custom")

    async with AttachmentClient(fake_store.url) as client:
        record = await client.upload(file, "incident", "rec1")

    assert record.stored_name == "wafer#$klarf.DOLI"
    stored = fake_store.records[record.id]
    assert stored["content_type"] == "text/plain"
    assert stored["table_name"] == "incident"
    assert stored["table_sys_id"] == "rec1"
    assert fake_store.contents[record.id] == b"\x00binary klarf\xff"


@pytest.mark.asyncio
async def test_upload_regular_file_keeps_name(fake_store: FakeAttachmentStore):
    file = LocalFile.from_bytes("report.pdf", b"%PDF-1.7")

    async with AttachmentClient(fake_store.url) as client:
        record = await client.upload(file, "incident", "rec1")

    assert record.stored_name == "report.pdf"
    assert record.size_bytes == 8
    assert fake_store.records[record.id]["content_type"] == "application/pdf"


@pytest.mark.asyncio
async def test_upload_failure(fake_store: FakeAttachmentStore):
    fake_store.failures["upload"] = (400, '{"error":{"message":"Maximum attachment size exceeded"}}')

    async with AttachmentClient(fake_store.url) as client:
        with pytest.raises(ServiceError, match="^400: "):
            await client.upload(LocalFile.from_bytes("a.pdf", b"x"), "incident", "rec1")


@pytest.mark.asyncio
async def test_delete(fake_store: FakeAttachmentStore):
    record = fake_store.add("report.pdf")

    async with AttachmentClient(fake_store.url) as client:
        await client.delete(record["sys_id"])

    assert record["sys_id"] not in fake_store.records


@pytest.mark.asyncio
async def test_delete_missing_record(fake_store: FakeAttachmentStore):
    async with AttachmentClient(fake_store.url) as client:
        with pytest.raises(ServiceError) as exc:
            await client.delete("nope")

    assert exc.value.status == 404
    assert "No Record found" in exc.value.body


@pytest.mark.asyncio
async def test_download_uses_decoded_name(fake_store: FakeAttachmentStore):
    record = fake_store.add("wafer#$klarf.DOLI", content=b"klarf body")

    async with AttachmentClient(fake_store.url) as client:
        downloaded = await client.download(record["sys_id"], record["file_name"])

    assert downloaded.name == "wafer.klarf"
    assert downloaded.content == b"klarf body"
    assert downloaded.content_type == "text/plain"


@pytest.mark.asyncio
async def test_download_failure(fake_store: FakeAttachmentStore):
    async with AttachmentClient(fake_store.url) as client:
        with pytest.raises(ServiceError) as exc:
            await client.download("nope", "a.pdf")

    assert exc.value.status == 404
    assert "Download failed" in exc.value.body


@pytest.mark.asyncio
async def test_token_falls_back_to_session_cookie(fake_store: FakeAttachmentStore):
    async with aiohttp.ClientSession(cookie_jar=aiohttp.CookieJar(unsafe=True)) as session:
        session.cookie_jar.update_cookies({"glide_user_activity": "from-cookie"})
        client = AttachmentClient(fake_store.url, session=session)
        await client.list_attachments("incident", "rec1")
        await client.close()
        assert not session.closed

    assert fake_store.requests[0].token == "from-cookie"


@pytest.mark.asyncio
async def test_connection_error_propagates():
    async with AttachmentClient("http://127.0.0.1:9") as client:
        with pytest.raises(aiohttp.ClientConnectionError):
            await client.list_attachments("incident", "rec1")
