from urllib.parse import parse_qs, urlparse

import pytest

import storage


class TestUpload:
    def test_writes_file_under_trip_folder(self, temp_storage):
        path = storage.upload_file("2026-06-tokyo", "flight-1", b"%PDF-1.4")

        assert path == "trips/2026-06-tokyo/flight-1.pdf"
        assert (temp_storage / path).read_bytes() == b"%PDF-1.4"
        assert storage.read_file(path) == b"%PDF-1.4"

    def test_indexed_attachment_path(self, temp_storage):
        path = storage.upload_file("t", "activity-1", b"\x89PNG", mime_type="image/png", index=2)

        assert path == "trips/t/activity-1-2.png"

    def test_unsupported_mime_type(self, temp_storage):
        with pytest.raises(ValueError):
            storage.upload_file("t", "activity-1", b"hello", mime_type="text/plain")

    def test_rejects_traversal_in_ids(self, temp_storage):
        with pytest.raises(ValueError):
            storage.upload_file("..", "flight-1", b"%PDF-1.4")


class TestDelete:
    def test_delete_file(self, temp_storage):
        path = storage.upload_file("t", "hotel-1", b"%PDF-1.4")

        storage.delete_file(path)

        assert not (temp_storage / path).exists()

    def test_missing_file_does_not_raise(self, temp_storage):
        storage.delete_file("trips/t/nothing.pdf")
        storage.delete_file(None)

    def test_delete_trip_files(self, temp_storage):
        storage.upload_file("t", "flight-1", b"%PDF-1.4")
        storage.upload_file("t", "hotel-1", b"%PDF-1.4")
        storage.upload_file("other", "flight-1", b"%PDF-1.4")

        storage.delete_trip_files("t")

        assert not (temp_storage / "trips" / "t").exists()
        assert (temp_storage / "trips" / "other" / "flight-1.pdf").exists()


@pytest.mark.parametrize("path,valid", [
    ("trips/2026-06-tokyo/flight-1.pdf", True),
    ("trips/t/activity-1-0.png", True),
    ("trips/../etc/passwd.txt", False),
    ("trips/t/sub/flight-1.pdf", False),
    ("other/t/flight-1.pdf", False),
    ("trips/t/noext", False),
    ("", False),
])
def test_is_valid_path(path, valid):
    assert storage.is_valid_path(path) is valid


class TestSignedUrls:
    def _parts(self, url):
        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        return parsed.path, query["expires"][0], query["signature"][0]

    def test_round_trip(self, temp_storage):
        url = storage.get_signed_url("trips/t/flight-1.pdf", expires_in=60)

        path, expires, signature = self._parts(url)

        assert path == "/files/trips/t/flight-1.pdf"
        assert storage.verify_signed_url("trips/t/flight-1.pdf", expires, signature)

    def test_signature_bound_to_path(self, temp_storage):
        _, expires, signature = self._parts(storage.get_signed_url("trips/t/flight-1.pdf"))

        assert not storage.verify_signed_url("trips/t/hotel-1.pdf", expires, signature)

    def test_expired(self, temp_storage):
        _, expires, signature = self._parts(storage.get_signed_url("trips/t/flight-1.pdf", expires_in=-10))

        assert not storage.verify_signed_url("trips/t/flight-1.pdf", expires, signature)

    def test_garbage_expiry(self, temp_storage):
        assert not storage.verify_signed_url("trips/t/flight-1.pdf", "soon", "abc")
