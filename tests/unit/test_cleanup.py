import asyncio
import json

import pytest

from gallery.clients.stub import StubBlobStore
from gallery.domain.dto import ExtractCleanupTargetsCommand
from gallery.domain.models import BlobRef
from gallery.domain.use_cases.cleanup import extract_cleanup_targets, rejected_blobs_attribute
from gallery.workers.handlers import cleanup
from tests.unit.pipeline_fixtures import BUCKET, build_deps, inbound, s3_records


def _targets(body: dict[str, object] | str, attributes: dict[str, str] | None = None):
    return extract_cleanup_targets(
        ExtractCleanupTargetsCommand(message=inbound(body, attributes=attributes), default_bucket=BUCKET)
    )


@pytest.mark.unit
def test_rejected_blobs_attribute_narrows_the_targets() -> None:
    attributes = rejected_blobs_attribute((BlobRef(bucket=BUCKET, key="bad.txt"),))

    targets = _targets({"Message": json.dumps(s3_records("good.png", "bad.txt"))}, attributes=attributes)

    assert targets.strategy == "rejected"
    assert targets.blobs == (BlobRef(bucket=BUCKET, key="bad.txt"),)


@pytest.mark.unit
def test_unreadable_rejected_blobs_attribute_is_ignored() -> None:
    targets = _targets({"key": "a.txt"}, attributes={"rejected_blobs": "{not json"})

    assert targets.strategy == "structured"
    assert targets.blobs == (BlobRef(bucket=BUCKET, key="a.txt"),)


@pytest.mark.unit
def test_structured_envelope_is_preferred() -> None:
    targets = _targets({"Message": json.dumps(s3_records("a.txt", "b+c.txt", bucket="other"))})

    assert targets.strategy == "structured"
    assert targets.blobs == (BlobRef(bucket="other", key="a.txt"), BlobRef(bucket="other", key="b c.txt"))


@pytest.mark.unit
def test_flat_key_falls_back_to_configured_bucket() -> None:
    targets = _targets({"key": "a.txt"})

    assert targets.strategy == "structured"
    assert targets.blobs == (BlobRef(bucket=BUCKET, key="a.txt"),)


@pytest.mark.unit
def test_message_attributes_are_second_choice() -> None:
    targets = _targets({"note": "nothing useful"}, attributes={"key": "x.bmp"})

    assert targets.strategy == "attributes"
    assert targets.blobs == (BlobRef(bucket=BUCKET, key="x.bmp"),)


@pytest.mark.unit
def test_pattern_search_recovers_keys_from_broken_json() -> None:
    body = '{"Message": "{\\"Records\\":[{\\"s3\\":{\\"bucket\\":{\\"name\\":\\"other\\"},\\"object\\":{\\"key\\":\\"a.txt\\"'

    targets = _targets(body)

    assert targets.strategy == "heuristic"
    assert targets.blobs == (BlobRef(bucket="other", key="a.txt"),)


@pytest.mark.unit
def test_nothing_found_yields_no_targets() -> None:
    targets = _targets("total garbage")

    assert targets.strategy == "none"
    assert targets.blobs == ()


@pytest.mark.unit
def test_cleanup_deletes_and_is_idempotent() -> None:
    blobs = StubBlobStore()
    blobs.put_object(bucket=BUCKET, key="a.txt", payload=b"hi", content_type="text/plain")
    deps = build_deps(blobs=blobs)
    message = inbound({"Message": json.dumps(s3_records("a.txt"))})

    first = asyncio.run(cleanup.process_message(deps, message=message))
    second = asyncio.run(cleanup.process_message(deps, message=message))

    assert first.disposition == "applied"
    assert first.image_ids == ("a.txt",)
    assert second.disposition == "ignored"
    assert second.error_code == "blob_not_found"
    assert blobs.deletes == [(BUCKET, "a.txt")]
    assert not blobs.exists(bucket=BUCKET, key="a.txt")


@pytest.mark.unit
def test_cleanup_without_target_is_dropped() -> None:
    result = asyncio.run(cleanup.process_message(build_deps(), message=inbound("total garbage")))

    assert result.disposition == "dropped"
    assert result.error_code == "unparseable_payload"


@pytest.mark.unit
def test_cleanup_storage_failure_propagates() -> None:
    class BrokenBlobStore(StubBlobStore):
        def delete_object(self, *, bucket: str, key: str) -> None:
            raise ConnectionError("storage unreachable")

    blobs = BrokenBlobStore()
    blobs.put_object(bucket=BUCKET, key="a.txt", payload=b"hi", content_type="text/plain")

    with pytest.raises(ConnectionError):
        asyncio.run(cleanup.process_message(build_deps(blobs=blobs), message=inbound({"key": "a.txt"})))
