import json
import unittest

import requests

from bucket_browser.models import Bucket, Tag
from bucket_browser.services import (
    MissingCredentialsError,
    StorageApiService,
    TransportError,
)

CREDENTIALS = {
    "api_url": "http://api.local/",
    "access_key": "access",
    "secret_key": "secret",
}


class FakeResponse:
    def __init__(self, status_code=200, payload=None, content=None):
        self.status_code = status_code
        self._payload = payload
        if content is None:
            content = b"" if payload is None else json.dumps(payload).encode()
        self.content = content

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            return json.loads(self.content.decode() or "null")
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed += 1
        return False

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class StorageApiServiceTests(unittest.TestCase):
    def make_service(self, *responses):
        session = FakeSession(responses)
        return StorageApiService(session_factory=lambda: session, timeout=5), session

    def test_list_buckets_sends_credential_headers(self):
        service, session = self.make_service(
            FakeResponse(payload=[{"name": "photos", "created": "2024-01-02", "access": "private", "objects": "4"}])
        )

        buckets = service.list_buckets(**CREDENTIALS)

        self.assertEqual([Bucket(name="photos", created="2024-01-02", access="private", objects=4)], buckets)
        method, url, kwargs = session.requests[0]
        self.assertEqual(("GET", "http://api.local/buckets"), (method, url))
        self.assertEqual("access", kwargs["headers"]["X-Access-Key"])
        self.assertEqual("secret", kwargs["headers"]["X-Secret-Key"])
        self.assertEqual(5, kwargs["timeout"])
        self.assertEqual(1, session.closed)

    def test_missing_credentials_rejected_without_request(self):
        service, session = self.make_service()

        with self.assertRaises(MissingCredentialsError):
            service.list_buckets(api_url="http://api.local", access_key="", secret_key="secret")
        with self.assertRaises(MissingCredentialsError):
            service.fetch_bytes(
                api_url="http://api.local",
                access_key="access",
                secret_key=None,
                bucket_name="b",
                file_name="f",
            )
        self.assertEqual([], session.requests)

    def test_list_files_parses_entries_and_normalizes_tags(self):
        service, session = self.make_service(
            FakeResponse(
                payload=[
                    {
                        "name": "a.png",
                        "size": 12,
                        "contentType": "image/png",
                        "lastModified": "2024-05-01T10:00:00Z",
                        "tags": [{"Key": "Team", "Value": "Blue"}, {"key": "x", "value": "y"}],
                    }
                ]
            )
        )

        entries = service.list_files(bucket_name="my bucket", **CREDENTIALS)

        self.assertEqual("http://api.local/buckets/my%20bucket/files", session.requests[0][1])
        entry = entries[0]
        self.assertEqual(("a.png", 12, "image/png"), (entry.name, entry.size, entry.content_type))
        self.assertEqual((Tag("Team", "Blue"), Tag("x", "y")), entry.tags)
        self.assertEqual(2024, entry.last_modified.year)
        self.assertIsNone(entry.metadata)

    def test_list_files_non_list_body_is_empty(self):
        service, _ = self.make_service(FakeResponse(payload={"files": []}))

        self.assertEqual([], service.list_files(bucket_name="b", **CREDENTIALS))

    def test_get_metadata_keeps_raw_values(self):
        payload = {"tags": [{"key": "k", "value": "v"}], "owner": "ann"}
        service, session = self.make_service(FakeResponse(payload=payload))

        metadata = service.get_metadata(bucket_name="b", file_name="dir/a b.txt", **CREDENTIALS)

        self.assertEqual("http://api.local/files/b/dir%2Fa%20b.txt/metadata", session.requests[0][1])
        self.assertEqual((Tag("k", "v"),), metadata.tags)
        self.assertEqual(payload, metadata.values)

    def test_fetch_bytes_returns_content(self):
        service, _ = self.make_service(FakeResponse(content=b"\x89PNG"))

        self.assertEqual(b"\x89PNG", service.fetch_bytes(bucket_name="b", file_name="a.png", **CREDENTIALS))

    def test_upload_sends_multipart_with_tags(self):
        service, session = self.make_service(FakeResponse(payload={"message": "ok"}))

        service.upload_bytes(
            bucket_name="b",
            file_name="a.png",
            data=b"data",
            tags=[Tag("team", "blue")],
            content_type="image/png",
            **CREDENTIALS,
        )

        method, url, kwargs = session.requests[0]
        self.assertEqual(("POST", "http://api.local/files/b/upload"), (method, url))
        self.assertEqual({"file": ("a.png", b"data", "image/png")}, kwargs["files"])
        self.assertEqual([{"key": "team", "value": "blue"}], json.loads(kwargs["data"]["tags"]))
        self.assertNotIn("Accept", kwargs["headers"])

    def test_upload_without_tags_omits_field(self):
        service, session = self.make_service(FakeResponse())

        service.upload_bytes(bucket_name="b", file_name="a.bin", data=b"", **CREDENTIALS)

        self.assertEqual({}, session.requests[0][2]["data"])
        self.assertEqual({"file": ("a.bin", b"")}, session.requests[0][2]["files"])

    def test_create_bucket_posts_name(self):
        service, session = self.make_service(FakeResponse(payload={"message": "created"}))

        bucket = service.create_bucket(bucket_name="photos", **CREDENTIALS)

        self.assertEqual(Bucket(name="photos"), bucket)
        self.assertEqual({"bucketName": "photos"}, session.requests[0][2]["json"])

    def test_delete_file(self):
        service, session = self.make_service(FakeResponse())

        service.delete_file(bucket_name="b", file_name="a.txt", **CREDENTIALS)

        self.assertEqual(("DELETE", "http://api.local/files/b/a.txt"), session.requests[0][:2])

    def test_error_message_comes_from_body(self):
        service, _ = self.make_service(FakeResponse(status_code=403, payload={"message": "Access denied"}))

        with self.assertRaises(TransportError) as ctx:
            service.list_buckets(**CREDENTIALS)

        self.assertEqual("Access denied", str(ctx.exception))
        self.assertEqual(403, ctx.exception.status)

    def test_error_without_body_uses_status(self):
        service, _ = self.make_service(FakeResponse(status_code=500, content=b"<html>"))

        with self.assertRaises(TransportError) as ctx:
            service.delete_file(bucket_name="b", file_name="a", **CREDENTIALS)

        self.assertEqual("Request failed with status code 500", str(ctx.exception))

    def test_network_error_is_wrapped(self):
        service, _ = self.make_service(requests.ConnectionError("connection refused"))

        with self.assertRaises(TransportError) as ctx:
            service.list_buckets(**CREDENTIALS)

        self.assertEqual("connection refused", str(ctx.exception))
        self.assertIsNone(ctx.exception.status)

    def test_login(self):
        service, session = self.make_service(
            FakeResponse(payload={"success": True}),
            FakeResponse(payload={"success": False}),
        )

        self.assertTrue(service.login(**CREDENTIALS))
        self.assertFalse(service.login(**CREDENTIALS))
        self.assertEqual({"accessKey": "access", "secretKey": "secret"}, session.requests[0][2]["json"])
        self.assertNotIn("headers", session.requests[0][2])


if __name__ == "__main__":
    unittest.main()
