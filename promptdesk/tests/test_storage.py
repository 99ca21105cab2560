import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from promptdesk.errors import BackendError
from promptdesk.storage import ALREADY_EXISTS_MESSAGE, InMemoryFileStorage, S3FileStorage


class InMemoryFileStorageTests(unittest.TestCase):
    def test_upload_and_public_url(self):
        storage = InMemoryFileStorage(base_url="https://cdn.test/images")
        storage.upload("1-cat.png", b"data", "image/png")
        self.assertEqual(storage.stored_objects["1-cat.png"], ("image/png", b"data"))
        self.assertEqual(storage.public_url("1-cat.png"), "https://cdn.test/images/1-cat.png")

    def test_upload_never_overwrites(self):
        storage = InMemoryFileStorage()
        storage.upload("1-cat.png", b"first", "image/png")
        with self.assertRaises(BackendError) as ctx:
            storage.upload("1-cat.png", b"second", "image/png")
        self.assertEqual(ctx.exception.message, ALREADY_EXISTS_MESSAGE)
        self.assertEqual(storage.stored_objects["1-cat.png"][1], b"first")


class S3FileStorageTests(unittest.TestCase):
    def make_storage(self, mock_client, **overrides):
        options = dict(
            bucket="prompt-images",
            region="us-west-2",
            endpoint="",
            access_key_id="key",
            secret_access_key="secret",
        )
        options.update(overrides)
        s3 = MagicMock()
        mock_client.return_value = s3
        return S3FileStorage(**options), s3

    @patch("promptdesk.storage.boto3.client")
    def test_upload_is_create_only(self, mock_client):
        storage, s3 = self.make_storage(mock_client)
        storage.upload("1-cat.png", b"data", "image/png")
        s3.put_object.assert_called_once_with(
            Bucket="prompt-images",
            Key="1-cat.png",
            Body=b"data",
            ContentType="image/png",
            IfNoneMatch="*",
        )
        self.assertEqual(mock_client.call_args.args, ("s3",))
        self.assertEqual(mock_client.call_args.kwargs["region_name"], "us-west-2")
        self.assertIsNone(mock_client.call_args.kwargs["endpoint_url"])

    @patch("promptdesk.storage.boto3.client")
    def test_existing_object_maps_to_already_exists(self, mock_client):
        storage, s3 = self.make_storage(mock_client)
        s3.put_object.side_effect = ClientError(
            {"Error": {"Code": "PreconditionFailed", "Message": "At least one of the pre-conditions you specified did not hold"}},
            "PutObject",
        )
        with self.assertRaises(BackendError) as ctx:
            storage.upload("1-cat.png", b"data", "image/png")
        self.assertEqual(ctx.exception.message, ALREADY_EXISTS_MESSAGE)

    @patch("promptdesk.storage.boto3.client")
    def test_other_client_errors_keep_backend_message(self, mock_client):
        storage, s3 = self.make_storage(mock_client)
        s3.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}},
            "PutObject",
        )
        with self.assertRaises(BackendError) as ctx:
            storage.upload("1-cat.png", b"data", "image/png")
        self.assertEqual(ctx.exception.message, "Access Denied")

    @patch("promptdesk.storage.boto3.client")
    def test_public_url_variants(self, mock_client):
        storage, _ = self.make_storage(mock_client, public_base_url="https://cdn.test/")
        self.assertEqual(storage.public_url("a.png"), "https://cdn.test/a.png")

        storage, _ = self.make_storage(mock_client, endpoint="https://minio.local")
        self.assertEqual(storage.public_url("a.png"), "https://minio.local/prompt-images/a.png")

        storage, _ = self.make_storage(mock_client)
        self.assertEqual(
            storage.public_url("a.png"),
            "https://prompt-images.s3.us-west-2.amazonaws.com/a.png",
        )


if __name__ == "__main__":
    unittest.main()
