import json

import pytest

from gallery.domain.classifier import classify_message
from gallery.domain.models import ClassifiedEvent, EventKind, Malformed
from tests.unit.pipeline_fixtures import BUCKET, inbound, s3_records


@pytest.mark.unit
@pytest.mark.parametrize("body", ["not json", "[1, 2]", '"text"', ""])
def test_non_object_body_is_unparseable(body: str) -> None:
    result = classify_message(inbound(body))

    assert isinstance(result, Malformed)
    assert result.code == "unparseable_payload"
    assert result.message_id == "msg-1"


@pytest.mark.unit
def test_bare_s3_records_classify_as_blob_created_with_decoded_keys() -> None:
    result = classify_message(inbound(s3_records("summer/my+photo%281%29.png")))

    assert isinstance(result, ClassifiedEvent)
    assert result.kind == EventKind.BLOB_CREATED
    assert result.payload == {"blobs": [{"bucket": BUCKET, "key": "summer/my photo(1).png"}]}


@pytest.mark.unit
def test_topic_envelope_is_unwrapped_once() -> None:
    body = {"Type": "Notification", "Message": json.dumps(s3_records("a.png"))}

    result = classify_message(inbound(body))

    assert isinstance(result, ClassifiedEvent)
    assert result.kind == EventKind.BLOB_CREATED
    assert result.payload["blobs"] == [{"bucket": BUCKET, "key": "a.png"}]


@pytest.mark.unit
def test_envelope_inside_envelope_is_malformed() -> None:
    inner = {"Message": json.dumps(s3_records("a.png"))}
    body = {"Message": json.dumps(inner)}

    result = classify_message(inbound(body))

    assert isinstance(result, Malformed)
    assert result.code == "nested_envelope"


@pytest.mark.unit
def test_metadata_kind_comes_from_transport_attribute() -> None:
    result = classify_message(
        inbound({"id": "a.png", "value": "Sunset"}, attributes={"metadata_type": "Caption"})
    )

    assert isinstance(result, ClassifiedEvent)
    assert result.kind == EventKind.METADATA_UPDATE
    assert result.payload == {"id": "a.png", "field": "Caption", "value": "Sunset"}


@pytest.mark.unit
def test_envelope_message_attributes_feed_classification() -> None:
    body = {
        "Message": json.dumps({"id": "a.png", "value": "Ansel"}),
        "MessageAttributes": {"metadata_type": {"Type": "String", "Value": "name"}},
    }

    result = classify_message(inbound(body))

    assert isinstance(result, ClassifiedEvent)
    assert result.kind == EventKind.METADATA_UPDATE
    assert result.payload["field"] == "name"


@pytest.mark.unit
def test_transport_attributes_win_over_envelope_attributes() -> None:
    body = {
        "Message": json.dumps({"id": "a.png", "value": "Sunset"}),
        "MessageAttributes": {"metadata_type": {"Type": "String", "Value": "name"}},
    }

    result = classify_message(inbound(body, attributes={"metadata_type": "Caption"}))

    assert isinstance(result, ClassifiedEvent)
    assert result.payload["field"] == "Caption"


@pytest.mark.unit
def test_status_update_shape_is_recognized_from_payload() -> None:
    body = {"id": "a.png", "date": "2026-03-01", "update": {"status": "Pass", "reason": "Sharp"}}

    result = classify_message(inbound(body))

    assert isinstance(result, ClassifiedEvent)
    assert result.kind == EventKind.STATUS_UPDATE
    assert result.payload == {"id": "a.png", "status": "Pass", "reason": "Sharp", "review_date": "2026-03-01"}


@pytest.mark.unit
def test_explicit_event_type_alias_with_flat_blob_payload() -> None:
    result = classify_message(
        inbound({"bucket": BUCKET, "key": "b.jpg"}, attributes={"event_type": "blob-created"})
    )

    assert isinstance(result, ClassifiedEvent)
    assert result.kind == EventKind.BLOB_CREATED
    assert result.payload == {"blobs": [{"bucket": BUCKET, "key": "b.jpg"}]}


@pytest.mark.unit
def test_in_payload_kind_field_is_used_when_no_attribute() -> None:
    body = {"kind": "StatusUpdate", "id": "a.png", "status": "Reject"}

    result = classify_message(inbound(body))

    assert isinstance(result, ClassifiedEvent)
    assert result.kind == EventKind.STATUS_UPDATE
    assert result.payload["status"] == "Reject"


@pytest.mark.unit
def test_unresolvable_explicit_kind_is_not_second_guessed() -> None:
    result = classify_message(inbound(s3_records("a.png"), attributes={"event_type": "Bogus"}))

    assert isinstance(result, Malformed)
    assert result.code == "unknown_kind"


@pytest.mark.unit
def test_records_without_object_created_events_are_malformed() -> None:
    result = classify_message(inbound(s3_records("a.png", event_name="ObjectRemoved:Delete")))

    assert isinstance(result, Malformed)
    assert result.code == "unknown_kind"


@pytest.mark.unit
def test_object_without_kind_markers_is_unknown() -> None:
    result = classify_message(inbound({"id": "a.png"}))

    assert isinstance(result, Malformed)
    assert result.code == "unknown_kind"
