from __future__ import annotations

import io

import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber

from repository.snapshot_store import S3SnapshotStore
from util.errors import ObjectNotFound, SnapshotStoreError

BUCKET = "serena-test"


@pytest.fixture
def s3():
    client = boto3.client(
        "s3",
        region_name="auto",
        endpoint_url="https://example.r2.cloudflarestorage.com",
        aws_access_key_id="AKIDEXAMPLE",
        aws_secret_access_key="secret",
    )
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


def _store(client) -> S3SnapshotStore:
    return S3SnapshotStore(
        bucket=BUCKET,
        endpoint_url=None,
        access_key_id=None,
        secret_access_key=None,
        client=client,
    )


def test_put_object(s3):
    client, stubber = s3
    stubber.add_response(
        "put_object", {}, {"Bucket": BUCKET, "Key": "p/LATEST", "Body": b"name\n"}
    )
    _store(client).put("p/LATEST", b"name\n")


def test_get_object_returns_bytes(s3):
    client, stubber = s3
    body = StreamingBody(io.BytesIO(b"payload"), len(b"payload"))
    stubber.add_response("get_object", {"Body": body}, {"Bucket": BUCKET, "Key": "p/LATEST"})
    assert _store(client).get("p/LATEST") == b"payload"


@pytest.mark.parametrize("code", ["NoSuchKey", "404"])
def test_missing_key_is_object_not_found(s3, code):
    client, stubber = s3
    stubber.add_client_error("get_object", service_error_code=code, http_status_code=404)
    with pytest.raises(ObjectNotFound) as exc:
        _store(client).get("p/LATEST")
    assert exc.value.key == "p/LATEST"


def test_other_client_errors_are_store_errors(s3):
    client, stubber = s3
    stubber.add_client_error("get_object", service_error_code="AccessDenied", http_status_code=403)
    with pytest.raises(SnapshotStoreError) as exc:
        _store(client).get("p/LATEST")
    assert not isinstance(exc.value, ObjectNotFound)
    assert exc.value.operation == "get"


def test_list_walks_every_page(s3):
    client, stubber = s3
    prefix = "p/snapshots/"
    stubber.add_response(
        "list_objects_v2",
        {
            "Contents": [{"Key": prefix + "serena-home-1.tar.gz"}],
            "IsTruncated": True,
            "NextContinuationToken": "t1",
        },
        {"Bucket": BUCKET, "Prefix": prefix},
    )
    stubber.add_response(
        "list_objects_v2",
        {"Contents": [{"Key": prefix + "serena-home-2.tar.gz"}], "IsTruncated": False},
        {"Bucket": BUCKET, "Prefix": prefix, "ContinuationToken": "t1"},
    )
    assert _store(client).list(prefix) == [
        prefix + "serena-home-1.tar.gz",
        prefix + "serena-home-2.tar.gz",
    ]


def test_list_empty_prefix(s3):
    client, stubber = s3
    stubber.add_response("list_objects_v2", {"IsTruncated": False}, {"Bucket": BUCKET, "Prefix": "p/"})
    assert _store(client).list("p/") == []


def test_delete_failure_is_store_error(s3):
    client, stubber = s3
    stubber.add_client_error("delete_object", service_error_code="InternalError", http_status_code=500)
    with pytest.raises(SnapshotStoreError) as exc:
        _store(client).delete("p/snapshots/x")
    assert exc.value.operation == "delete"
