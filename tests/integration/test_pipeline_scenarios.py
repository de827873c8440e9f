import asyncio
import json

import pytest

from gallery.clients.stub import StubBlobStore, StubNotifier
from gallery.repositories.stub import InMemoryImageRepository
from gallery.roles import validate_role
from gallery.services.bootstrap import RuntimeContainer, build_runtime_container
from gallery.settings import PipelineSettings
from gallery.transport.object_events import object_created_notification, topic_envelope
from gallery.workers.roles import CHANGE_FEED_QUEUE, DEAD_LETTER_QUEUE, INBOUND_QUEUE

BUCKET = "photo-gallery-images"


def _standalone() -> RuntimeContainer:
    return build_runtime_container(
        validate_role("standalone"),
        settings=PipelineSettings(
            images_bucket=BUCKET,
            notify_sender="gallery@example.com",
            notify_default_recipient="desk@example.com",
        ),
    )


def _loops(container: RuntimeContainer) -> dict[str, object]:
    return {loop.stage: loop for loop in container.worker_loops}


async def _drain(container: RuntimeContainer) -> None:
    loops = _loops(container)
    for stage in ("pipeline", "cleanup", "notify"):
        while await loops[stage].run_once():  # type: ignore[attr-defined]
            pass


async def _upload(container: RuntimeContainer, key: str, payload: bytes, content_type: str) -> None:
    assert isinstance(container.blobs, StubBlobStore)
    metadata = container.blobs.put_object(bucket=BUCKET, key=key, payload=payload, content_type=content_type)
    await container.queues[INBOUND_QUEUE].send(body=topic_envelope(object_created_notification(metadata)))


@pytest.mark.integration
def test_accepted_photo_is_ingested_reviewed_and_notified() -> None:
    container = _standalone()
    repository = container.repository
    notifier = container.notifier
    assert isinstance(repository, InMemoryImageRepository)
    assert isinstance(notifier, StubNotifier)

    async def _run() -> None:
        await _upload(container, "a.png", b"\x89PNG fake", "image/png")
        await _drain(container)
        await container.queues[INBOUND_QUEUE].send(
            body=json.dumps({"id": "a.png", "value": "Ansel"}),
            attributes={"metadata_type": "name"},
        )
        await container.queues[INBOUND_QUEUE].send(
            body=topic_envelope({"id": "a.png", "update": {"status": "Pass"}}),
        )
        await _drain(container)

    asyncio.run(_run())

    record = asyncio.run(repository.get_image(image_id="a.png"))
    assert record is not None
    assert record.size == len(b"\x89PNG fake")
    assert record.content_type == "image/png"
    assert record.upload_time is not None
    assert record.photographer_name == "Ansel"
    assert record.status == "Pass"
    assert record.reason == "No reason provided"
    assert record.review_date is not None

    assert len(notifier.sent) == 1
    email = notifier.sent[0]
    assert email.subject == "Photo Status Update: Pass"
    assert email.recipient == "desk@example.com"
    assert email.sender == "gallery@example.com"
    assert "Hello Ansel," in email.text_body
    assert all(queue.depth() == 0 for queue in container.queues.values())


@pytest.mark.integration
def test_disallowed_upload_is_deleted_and_never_recorded() -> None:
    container = _standalone()
    blobs = container.blobs
    assert isinstance(blobs, StubBlobStore)

    async def _run() -> None:
        await _upload(container, "a.txt", b"plain text", "text/plain")
        loops = _loops(container)
        assert await loops["pipeline"].run_once() is True  # type: ignore[attr-defined]
        assert container.queues[DEAD_LETTER_QUEUE].depth() == 1
        await _drain(container)

    asyncio.run(_run())

    assert not blobs.exists(bucket=BUCKET, key="a.txt")
    assert blobs.deletes == [(BUCKET, "a.txt")]
    assert asyncio.run(container.repository.get_image(image_id="a.txt")) is None
    assert container.queues[CHANGE_FEED_QUEUE].depth() == 0
    assert container.notifier.sent == []  # type: ignore[attr-defined]


@pytest.mark.integration
def test_mixed_event_deletes_only_the_disallowed_blob() -> None:
    container = _standalone()
    blobs = container.blobs
    assert isinstance(blobs, StubBlobStore)

    async def _run() -> None:
        blobs.put_object(bucket=BUCKET, key="good.png", payload=b"png", content_type="image/png")
        blobs.put_object(bucket=BUCKET, key="bad.txt", payload=b"txt", content_type="text/plain")
        await container.queues[INBOUND_QUEUE].send(
            body=json.dumps(
                {
                    "Records": [
                        {
                            "eventSource": "aws:s3",
                            "eventName": "ObjectCreated:Put",
                            "s3": {"bucket": {"name": BUCKET}, "object": {"key": key}},
                        }
                        for key in ("good.png", "bad.txt")
                    ]
                }
            )
        )
        await _drain(container)

    asyncio.run(_run())

    assert blobs.deletes == [(BUCKET, "bad.txt")]
    assert blobs.exists(bucket=BUCKET, key="good.png")
    assert container.queues[DEAD_LETTER_QUEUE].depth() == 0


@pytest.mark.integration
def test_unreadable_blob_is_retried_then_dead_lettered() -> None:
    container = _standalone()
    inbound = container.queues[INBOUND_QUEUE]
    dead_letter = container.queues[DEAD_LETTER_QUEUE]
    pipeline_loop = _loops(container)["pipeline"]

    async def _run() -> None:
        await inbound.send(body=json.dumps({"Records": [
            {"eventSource": "aws:s3", "eventName": "ObjectCreated:Put", "s3": {"bucket": {"name": BUCKET}, "object": {"key": "ghost.png"}}}
        ]}))
        for _ in range(container.settings.max_receive_count):
            assert await pipeline_loop.run_once() is True  # type: ignore[attr-defined]
            assert dead_letter.depth() == 0
        assert await pipeline_loop.run_once() is False  # type: ignore[attr-defined]
        assert dead_letter.depth() == 1
        await _drain(container)

    asyncio.run(_run())

    assert dead_letter.depth() == 0
    assert asyncio.run(container.repository.get_image(image_id="ghost.png")) is None


@pytest.mark.integration
def test_malformed_messages_do_not_block_valid_ones_in_a_batch() -> None:
    container = _standalone()
    inbound = container.queues[INBOUND_QUEUE]

    async def _run() -> None:
        await _upload(container, "b.jpg", b"jpeg", "image/jpeg")
        await inbound.send(body="not json at all")
        await inbound.send(body=json.dumps({"id": "b.jpg", "update": {"status": "Maybe"}}))
        await inbound.send(body=json.dumps({"id": "b.jpg", "value": "Dusk"}), attributes={"metadata_type": "Caption"})
        await _drain(container)

    asyncio.run(_run())

    record = asyncio.run(container.repository.get_image(image_id="b.jpg"))
    assert record is not None
    assert record.caption == "Dusk"
    assert record.status == "Unset"
    assert inbound.depth() == 0
    assert container.queues[DEAD_LETTER_QUEUE].depth() == 0
