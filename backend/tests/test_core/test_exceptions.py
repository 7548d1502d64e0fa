"""Tests for the publish error taxonomy and its HTTP status mapping."""

from app.core.exceptions import (
    AuthorizationError,
    ChecksumMismatchError,
    ClientError,
    PolicyError,
    PublishError,
    ReportingError,
    UploadError,
)


class TestStatusCodes:
    def test_client_error_is_400(self):
        assert ClientError("bad").status_code == 400

    def test_authorization_error_is_401_by_default(self):
        assert AuthorizationError("raced").status_code == 401

    def test_authorization_error_can_be_terminal_404(self):
        err = AuthorizationError("unknown claim", status_code=404)
        assert err.status_code == 404
        # Class default is untouched
        assert AuthorizationError.status_code == 401

    def test_policy_error_is_413(self):
        assert PolicyError("too big").status_code == 413

    def test_base_is_500(self):
        assert PublishError("boom").status_code == 500


class TestToDict:
    def test_shape(self):
        assert ClientError("No packages").to_dict() == {"ok": False, "message": "No packages"}


class TestUploadError:
    def test_all_checksum_mismatches_is_422(self):
        err = UploadError(
            [
                ("a", ChecksumMismatchError("k1", "aaa", "bbb")),
                ("b", ChecksumMismatchError("k2", "ccc", "ddd")),
            ]
        )
        assert err.status_code == 422

    def test_storage_failure_is_500(self):
        err = UploadError(
            [
                ("a", ChecksumMismatchError("k1", "aaa", "bbb")),
                ("b", ConnectionError("down")),
            ]
        )
        assert err.status_code == 500

    def test_lists_every_failure(self):
        err = UploadError([("a", ValueError("x")), ("b", ValueError("y"))])
        data = err.to_dict()
        assert data["ok"] is False
        assert "a, b" in data["message"]
        assert [e["name"] for e in data["errors"]] == ["a", "b"]
        assert data["errors"][1]["error"] == "y"


class TestChecksumMismatchError:
    def test_message_carries_both_digests(self):
        err = ChecksumMismatchError("acme:widgets:abc:pkg", "expected", "actual")
        assert "expected" in str(err)
        assert "actual" in str(err)
        assert err.key == "acme:widgets:abc:pkg"


class TestReportingError:
    def test_is_not_a_publish_error(self):
        err = ReportingError("comment", RuntimeError("403"))
        assert not isinstance(err, PublishError)
        assert err.track == "comment"
        assert "403" in str(err)
