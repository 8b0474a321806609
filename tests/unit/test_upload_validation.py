"""
Upload validation and storage-name generation tests.

Validation runs before any byte is written, so these are pure functions.
"""

from __future__ import annotations

import io
import re
from datetime import UTC, datetime

from assetstore.components.assets import (
    DEFAULT_CONSTRAINTS,
    UploadConstraints,
    UploadFileInput,
    constraints_from_rules,
    generate_storage_name,
    is_image_mime,
    payload_size,
    safe_extension,
    validate_filename,
    validate_mime_type,
    validate_size,
    validate_upload,
)
from assetstore.rules.models import MIB, UploadsRules

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=UTC)
NAME_RE = re.compile(r"^\d{13}-[0-9a-f]{16}(\.[a-z0-9]+)?$")


class TestValidateSize:
    """Size limit enforcement."""

    def test_at_limit_is_allowed(self) -> None:
        """A file exactly at the limit passes."""
        constraints = UploadConstraints(max_size_bytes=100, allowed_mime_types=frozenset())
        assert validate_size(100, constraints) == []

    def test_over_limit_is_rejected(self) -> None:
        """One byte over the limit fails with file_too_large."""
        constraints = UploadConstraints(max_size_bytes=100, allowed_mime_types=frozenset())
        errors = validate_size(101, constraints)
        assert len(errors) == 1
        assert errors[0].code == "file_too_large"
        assert "101" in errors[0].message

    def test_zero_bytes_is_allowed(self) -> None:
        assert validate_size(0, DEFAULT_CONSTRAINTS) == []

    def test_default_limit_is_100_mib(self) -> None:
        assert DEFAULT_CONSTRAINTS.max_size_bytes == 100 * MIB
        assert validate_size(101 * MIB, DEFAULT_CONSTRAINTS)[0].code == "file_too_large"


class TestValidateMimeType:
    """MIME allow-list enforcement."""

    def test_allowed_types_pass(self) -> None:
        for mime in ("image/png", "application/pdf", "text/csv", "application/zip"):
            assert validate_mime_type(mime, DEFAULT_CONSTRAINTS) == []

    def test_unlisted_type_rejected(self) -> None:
        errors = validate_mime_type("application/x-msdownload", DEFAULT_CONSTRAINTS)
        assert len(errors) == 1
        assert errors[0].code == "unsupported_type"
        assert errors[0].field == "content_type"

    def test_match_is_exact(self) -> None:
        """No prefix or case-insensitive matching."""
        assert validate_mime_type("image/PNG", DEFAULT_CONSTRAINTS)
        assert validate_mime_type("image/svg+xml", DEFAULT_CONSTRAINTS)

    def test_per_call_allow_list(self) -> None:
        constraints = UploadConstraints(
            max_size_bytes=10, allowed_mime_types=frozenset({"text/plain"})
        )
        assert validate_mime_type("text/plain", constraints) == []
        assert validate_mime_type("image/png", constraints)


class TestValidateFilename:
    def test_normal_name_passes(self) -> None:
        assert validate_filename("report.pdf", DEFAULT_CONSTRAINTS) == []

    def test_empty_and_blank_rejected(self) -> None:
        assert validate_filename("", DEFAULT_CONSTRAINTS)[0].code == "invalid_filename"
        assert validate_filename("   ", DEFAULT_CONSTRAINTS)[0].code == "invalid_filename"

    def test_length_limit(self) -> None:
        assert validate_filename("a" * 255, DEFAULT_CONSTRAINTS) == []
        assert validate_filename("a" * 256, DEFAULT_CONSTRAINTS)[0].code == "invalid_filename"


class TestValidateUpload:
    def test_collects_every_error(self) -> None:
        """All failing checks are reported together."""
        constraints = UploadConstraints(max_size_bytes=2, allowed_mime_types=frozenset())
        file = UploadFileInput(data=b"abc", filename="", content_type="text/plain")

        size, errors = validate_upload(file, constraints)

        assert size == 3
        assert {e.code for e in errors} == {"invalid_filename", "unsupported_type", "file_too_large"}

    def test_stream_size_without_consuming(self) -> None:
        stream = io.BytesIO(b"hello world")
        file = UploadFileInput(data=stream, filename="a.csv", content_type="text/csv")

        size, errors = validate_upload(file, DEFAULT_CONSTRAINTS)

        assert size == 11
        assert errors == []
        assert stream.tell() == 0


class TestPayloadSize:
    def test_bytes(self) -> None:
        assert payload_size(b"12345") == 5

    def test_stream_counts_from_current_position(self) -> None:
        stream = io.BytesIO(b"0123456789")
        stream.seek(4)
        assert payload_size(stream) == 6
        assert stream.tell() == 4


class TestStorageNames:
    """Storage names are generated before content is seen."""

    def test_format(self) -> None:
        name = generate_storage_name("photo.PNG", NOW)
        assert NAME_RE.match(name)
        assert name.startswith(str(int(NOW.timestamp() * 1000)))
        assert name.endswith(".png")

    def test_same_content_same_time_gives_distinct_names(self) -> None:
        names = {generate_storage_name("same.png", NOW) for _ in range(200)}
        assert len(names) == 200

    def test_original_name_never_leaks(self) -> None:
        name = generate_storage_name("../../etc/passwd", NOW)
        assert "/" not in name
        assert "passwd" not in name

    def test_odd_extensions_dropped(self) -> None:
        assert safe_extension("archive.tar.gz") == ".gz"
        assert safe_extension("noext") == ""
        assert safe_extension(".hidden") == ""
        assert safe_extension("weird.p h p") == ""
        assert safe_extension("x." + "a" * 17) == ""


class TestHelpers:
    def test_is_image_mime(self) -> None:
        assert is_image_mime("image/webp")
        assert not is_image_mime("application/pdf")

    def test_constraints_from_rules(self) -> None:
        rules = UploadsRules(
            max_upload_bytes=5 * MIB, allowlist_mime_types=["image/png"], max_filename_length=50
        )
        constraints = constraints_from_rules(rules)
        assert constraints.max_size_bytes == 5 * MIB
        assert constraints.allowed_mime_types == frozenset({"image/png"})
        assert constraints.max_filename_length == 50
