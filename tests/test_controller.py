import asyncio
import unittest

from bucket_browser.controller import BucketBrowserController, NotSignedInError
from bucket_browser.models import Bucket, FileEntry, FileMetadata, Tag
from bucket_browser.naming import NamingViolation
from bucket_browser.profiles import ConnectionProfile
from bucket_browser.services import MissingCredentialsError, TransportError


class FakeService:
    def __init__(self):
        self.accept_login = True
        self.buckets = [Bucket(name="bucket-one")]
        self.files = [FileEntry(name="file.txt")]
        self.metadata = FileMetadata(tags=(Tag("k", "v"),))
        self.calls = []

    def _record(self, name, **kwargs):
        self.calls.append((name, kwargs))

    def login(self, **kwargs):
        self._record("login", **kwargs)
        return self.accept_login

    def list_buckets(self, **kwargs):
        self._record("list_buckets", **kwargs)
        return self.buckets

    def create_bucket(self, **kwargs):
        self._record("create_bucket", **kwargs)
        return Bucket(name=kwargs["bucket_name"])

    def list_files(self, **kwargs):
        self._record("list_files", **kwargs)
        return self.files

    def get_metadata(self, **kwargs):
        self._record("get_metadata", **kwargs)
        return self.metadata

    def fetch_bytes(self, **kwargs):
        self._record("fetch_bytes", **kwargs)
        return b"bytes"

    def upload_bytes(self, **kwargs):
        self._record("upload_bytes", **kwargs)

    def delete_file(self, **kwargs):
        self._record("delete_file", **kwargs)


class FakeProfileStorage:
    def __init__(self, profiles=None):
        self._profiles = list(profiles or [])
        self.saved_snapshots: list[list[ConnectionProfile]] = []

    def load(self):
        return list(self._profiles)

    def save(self, profiles):
        snapshot = [ConnectionProfile(**profile.__dict__) for profile in profiles]
        self.saved_snapshots.append(snapshot)
        self._profiles = snapshot


class BucketBrowserControllerTests(unittest.TestCase):
    def setUp(self):
        self.fake_service = FakeService()
        self.storage = FakeProfileStorage()
        self.controller = BucketBrowserController(service=self.fake_service, storage=self.storage)
        self.params = {
            "api_url": "http://localhost:5000",
            "access_key": "access",
            "secret_key": "secret",
        }

    def sign_in(self, **overrides):
        return asyncio.run(self.controller.sign_in(**{**self.params, **overrides}))

    def test_sign_in_verifies_credentials(self):
        session = self.sign_in()

        self.assertTrue(self.controller.is_signed_in)
        self.assertEqual(self.params, session.params())
        self.assertEqual([("login", self.params)], self.fake_service.calls)

    def test_rejected_login_leaves_signed_out(self):
        self.fake_service.accept_login = False

        with self.assertRaises(TransportError) as ctx:
            self.sign_in()

        self.assertEqual("Invalid credentials", str(ctx.exception))
        self.assertFalse(self.controller.is_signed_in)

    def test_sign_in_without_verification_skips_login(self):
        self.sign_in(verify=False)

        self.assertTrue(self.controller.is_signed_in)
        self.assertEqual([], self.fake_service.calls)

    def test_empty_credentials_rejected(self):
        with self.assertRaises(MissingCredentialsError):
            self.sign_in(secret_key="")

        self.assertEqual([], self.fake_service.calls)
        self.assertFalse(self.controller.is_signed_in)

    def test_operations_require_session(self):
        with self.assertRaises(NotSignedInError):
            asyncio.run(self.controller.list_buckets())
        with self.assertRaises(NotSignedInError):
            asyncio.run(self.controller.list_files("bucket-one"))
        with self.assertRaises(NotSignedInError):
            asyncio.run(self.controller.delete_file("bucket-one", "file.txt"))

        self.assertEqual([], self.fake_service.calls)

    def test_sign_out_clears_session(self):
        self.sign_in(verify=False)

        self.controller.sign_out()

        self.assertFalse(self.controller.is_signed_in)
        with self.assertRaises(NotSignedInError):
            self.controller.require_session()

    def test_gateway_passes_session_params(self):
        self.sign_in(verify=False)

        files = asyncio.run(self.controller.list_files("bucket-one"))
        metadata = asyncio.run(self.controller.get_metadata("bucket-one", "file.txt"))
        data = asyncio.run(self.controller.fetch_bytes("bucket-one", "file.txt"))

        self.assertIs(self.fake_service.files, files)
        self.assertIs(self.fake_service.metadata, metadata)
        self.assertEqual(b"bytes", data)
        self.assertEqual(
            [
                ("list_files", {**self.params, "bucket_name": "bucket-one"}),
                ("get_metadata", {**self.params, "bucket_name": "bucket-one", "file_name": "file.txt"}),
                ("fetch_bytes", {**self.params, "bucket_name": "bucket-one", "file_name": "file.txt"}),
            ],
            self.fake_service.calls,
        )

    def test_upload_and_delete_pass_through(self):
        self.sign_in(verify=False)

        asyncio.run(
            self.controller.upload_bytes(
                "bucket-one",
                "a.png",
                b"data",
                [Tag("team", "blue")],
                content_type="image/png",
            )
        )
        asyncio.run(self.controller.delete_file("bucket-one", "a.png"))

        self.assertEqual(
            [
                (
                    "upload_bytes",
                    {
                        **self.params,
                        "bucket_name": "bucket-one",
                        "file_name": "a.png",
                        "data": b"data",
                        "tags": (Tag("team", "blue"),),
                        "content_type": "image/png",
                    },
                ),
                ("delete_file", {**self.params, "bucket_name": "bucket-one", "file_name": "a.png"}),
            ],
            self.fake_service.calls,
        )

    def test_create_bucket_with_valid_name(self):
        self.sign_in(verify=False)
        substitutions = []

        bucket = asyncio.run(self.controller.create_bucket("photos", on_substitute=substitutions.append))

        self.assertEqual("photos", bucket.name)
        self.assertEqual([], substitutions)
        self.assertEqual([("create_bucket", {**self.params, "bucket_name": "photos"})], self.fake_service.calls)

    def test_create_bucket_substitutes_invalid_name_before_request(self):
        self.sign_in(verify=False)
        events = []

        def on_substitute(substitution):
            events.append(("substitute", list(self.fake_service.calls)))
            self.substitution = substitution

        bucket = asyncio.run(self.controller.create_bucket("My Bucket", on_substitute=on_substitute))

        self.assertEqual([("substitute", [])], events)
        self.assertEqual("mybucket", bucket.name)
        self.assertEqual("My Bucket", self.substitution.requested)
        self.assertEqual("mybucket", self.substitution.substituted)
        self.assertIs(NamingViolation.CHARACTERS, self.substitution.violation)
        self.assertTrue(
            self.substitution.message.endswith("Automatically creating bucket with suggested name: mybucket")
        )
        self.assertEqual("mybucket", self.fake_service.calls[0][1]["bucket_name"])

    def test_loads_profiles_from_storage_on_init(self):
        profiles = [ConnectionProfile(name="alpha", api_url="http://one", access_key="a", secret_key="b")]
        controller = BucketBrowserController(service=self.fake_service, storage=FakeProfileStorage(profiles))

        self.assertEqual(profiles, controller.list_profiles())

    def test_save_profile_creates_updates_and_renames(self):
        profile = ConnectionProfile(name="alpha", api_url="http://one", access_key="a", secret_key="b")
        self.controller.save_profile(profile)
        self.assertEqual([profile], self.controller.list_profiles())

        updated = ConnectionProfile(name="alpha", api_url="http://two", access_key="c", secret_key="d")
        self.controller.save_profile(updated)
        self.assertEqual([updated], self.controller.list_profiles())
        self.assertEqual("http://two", self.storage._profiles[0].api_url)

        renamed = ConnectionProfile(name="beta", api_url="http://two", access_key="c", secret_key="d")
        self.controller.save_profile(renamed, original_name="alpha")
        self.assertEqual([renamed], self.controller.list_profiles())

    def test_delete_profile_removes_and_persists(self):
        self.controller.save_profile(
            ConnectionProfile(name="alpha", api_url="http://one", access_key="a", secret_key="b")
        )

        self.controller.delete_profile("alpha")

        self.assertEqual([], self.controller.list_profiles())
        self.assertEqual([], self.storage._profiles)
        with self.assertRaises(ValueError):
            self.controller.delete_profile("missing")

    def test_sign_in_with_profile_uses_saved_credentials(self):
        self.controller.save_profile(
            ConnectionProfile(name="alpha", api_url="http://example", access_key="ak", secret_key="sk")
        )

        asyncio.run(self.controller.sign_in_with_profile("alpha"))

        self.assertEqual("alpha", self.controller.selected_profile)
        self.assertEqual(
            [("login", {"api_url": "http://example", "access_key": "ak", "secret_key": "sk"})],
            self.fake_service.calls,
        )
        with self.assertRaises(ValueError):
            asyncio.run(self.controller.sign_in_with_profile("missing"))


if __name__ == "__main__":
    unittest.main()
