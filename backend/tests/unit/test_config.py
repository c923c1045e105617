"""
Unit Tests for Settings Parsing
"""
from storefront.core.config import parse_cors_origins, parse_extensions, settings


class TestParseCorsOrigins:

    def test_comma_separated(self):
        assert parse_cors_origins("http://a.test, http://b.test,") == ["http://a.test", "http://b.test"]

    def test_json_list(self):
        assert parse_cors_origins('["http://a.test"]') == ["http://a.test"]

    def test_list_passthrough(self):
        assert parse_cors_origins(["http://a.test"]) == ["http://a.test"]

    def test_other_types(self):
        assert parse_cors_origins(None) == []


class TestParseExtensions:

    def test_strips_dots_and_case(self):
        assert parse_extensions(".JPG, png ,.Pdf") == ["jpg", "png", "pdf"]

    def test_json_list(self):
        assert parse_extensions('[".webp", "gif"]') == ["webp", "gif"]


class TestSettings:

    def test_upload_dirs_exist(self):
        assert settings.UPLOAD_DIR.is_dir()
        assert settings.CLAIM_UPLOAD_DIR.is_dir()
        assert settings.CLAIM_UPLOAD_DIR.parent == settings.UPLOAD_DIR

    def test_claim_uploads_allow_pdf(self):
        assert "pdf" in settings.CLAIM_EXTENSIONS
        assert "pdf" not in settings.IMAGE_EXTENSIONS

    def test_reset_url(self):
        assert settings.get_reset_password_url("abc").endswith("/reset-password?token=abc")

    def test_razorpay_configured_in_tests(self):
        assert settings.razorpay_configured is True
