"""Tests for dodiag/diagnostics/probes/archive.py — diagnostics archive inspection."""
import logging
import zipfile
from unittest.mock import patch

import pytest

from dodiag.diagnostics.context import DiagnosticContext
from dodiag.diagnostics.errors import CollaboratorTimeout, CollaboratorUnavailable
from dodiag.diagnostics.models import FileCategory, RecommendationSeverity, Severity, Status
from dodiag.diagnostics.probes.archive import (
    ArchiveMember,
    ArchiveProbe,
    categorize_member,
    decode_text,
    expand_cab,
    inspect_member,
    validate_archive_path,
)
from dodiag.utils.system import RC_TIMEOUT
from dodiag.utils.threads import TOO_LARGE_TO_SAMPLE


class TestValidateArchivePath:
    def test_wrong_extension(self):
        assert validate_archive_path("C:\\bad.txt") is False

    def test_missing_file(self, tmp_path):
        assert validate_archive_path(str(tmp_path / "missing.zip")) is False

    def test_empty(self):
        assert validate_archive_path(None) is False
        assert validate_archive_path("") is False

    def test_existing_zip(self, diag_zip):
        assert validate_archive_path(diag_zip) is True

    def test_existing_cab_uppercase(self, tmp_path):
        cab = tmp_path / "DIAG.CAB"
        cab.write_bytes(b"MSCF")
        assert validate_archive_path(str(cab)) is True

    def test_directory_rejected(self, tmp_path):
        folder = tmp_path / "folder.zip"
        folder.mkdir()
        assert validate_archive_path(str(folder)) is False


class TestCategorizeMember:
    LIMIT = 100

    @pytest.mark.parametrize("name,expected", [
        ("trace.etl", FileCategory.ETL_LOG),
        ("dosvc.LOG", FileCategory.TEXT_LOG),
        ("notes.txt", FileCategory.TEXT_LOG),
        ("policy.xml", FileCategory.CONFIGURATION),
        ("settings.json", FileCategory.CONFIGURATION),
        ("export.reg", FileCategory.CONFIGURATION),
        ("inner.cab", FileCategory.ARCHIVE),
        ("inner.7z", FileCategory.ARCHIVE),
        ("blob.bin", FileCategory.UNKNOWN),
    ])
    def test_extensions(self, name, expected):
        assert categorize_member(name, 10, self.LIMIT) is expected

    def test_large_unknown(self):
        assert categorize_member("dump.bin", 101, self.LIMIT) is FileCategory.LARGE_FILE

    def test_large_known_keeps_category(self):
        assert categorize_member("huge.etl", 10_000, self.LIMIT) is FileCategory.ETL_LOG


class TestDecodeText:
    def test_utf16_bom(self):
        assert decode_text("hello".encode("utf-16")) == "hello"

    def test_utf8_bom(self):
        assert decode_text(b"\xef\xbb\xbfhello") == "hello"


class TestInspectMember:
    def _member(self, name, data):
        import io
        return ArchiveMember(name, len(data), lambda: io.BytesIO(data))

    def test_text_sample_and_codes(self):
        data = b"line one\nhr=0x80d05001 seen\n"
        report = inspect_member(self._member("a.log", data), limit=1000, sample_bytes=8)
        assert report.record.sample_content == "line one"
        assert report.error_codes == ["0x80D05001"]

    def test_oversized_text_not_read(self):
        opened = []

        def opener():
            opened.append(True)
            raise AssertionError("must not be opened")

        member = ArchiveMember("big.log", 2000, opener)
        report = inspect_member(member, limit=1000, sample_bytes=10)
        assert report.record.sample_content == TOO_LARGE_TO_SAMPLE
        assert report.error_codes == []
        assert opened == []

    def test_binary_not_sampled(self):
        report = inspect_member(self._member("t.etl", b"\x00\x01"), limit=1000, sample_bytes=10)
        assert report.record.sample_content is None

    def test_utf16_log_scanned(self):
        data = "start\r\nerror 0x80D02002\r\n".encode("utf-16")
        report = inspect_member(self._member("u.log", data), limit=1000, sample_bytes=4096)
        assert report.error_codes == ["0x80D02002"]


class TestArchiveProbe:
    def test_bad_path_produces_no_records(self, caplog):
        context = DiagnosticContext(archive_path="C:\\bad.txt")
        with caplog.at_level(logging.WARNING):
            outcome = ArchiveProbe().run(context)
        assert context.file_records == []
        assert outcome.summary_rows == []
        assert "bad.txt" in caplog.text

    def test_zip_members_categorised(self, diag_zip):
        context = DiagnosticContext(archive_path=diag_zip)
        outcome = ArchiveProbe().run(context)

        by_name = {r.file_name: r for r in context.file_records}
        assert set(by_name) == {"logs/dosvc.log", "logs/trace.etl", "config/policy.xml",
                                "nested/inner.zip", "readme"}
        assert by_name["logs/trace.etl"].category is FileCategory.ETL_LOG
        assert by_name["config/policy.xml"].category is FileCategory.CONFIGURATION
        assert by_name["nested/inner.zip"].category is FileCategory.ARCHIVE
        assert by_name["readme"].category is FileCategory.UNKNOWN
        assert "0x80D02002" in by_name["logs/dosvc.log"].sample_content

        assert outcome.summary_rows[0].status is Status.WARN
        warn = [f for f in outcome.findings if f.severity is Severity.WARN]
        assert len(warn) == 1
        assert "0x80D02002" in warn[0].message
        assert outcome.recommendations[0].severity is RecommendationSeverity.IMPORTANT

    def test_clean_zip_is_info(self, tmp_path):
        path = tmp_path / "clean.zip"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("ok.log", "all good\n")
        outcome = ArchiveProbe().run(DiagnosticContext(archive_path=str(path)))
        assert outcome.summary_rows[0].status is Status.INFO
        assert outcome.recommendations == []

    def test_corrupt_zip_is_error(self, tmp_path):
        path = tmp_path / "corrupt.zip"
        path.write_bytes(b"not a zip at all")
        context = DiagnosticContext(archive_path=str(path))
        outcome = ArchiveProbe().run(context)
        assert outcome.summary_rows[0].status is Status.ERROR
        assert context.file_records == []

    def test_cab_extracted_with_collaborator(self, tmp_path):
        cab = tmp_path / "diag.cab"
        cab.write_bytes(b"MSCF")

        def extract(path, destination, timeout=60):
            with open("%s/dosvc.log" % destination, "w") as fh:
                fh.write("0x80D01001 service error\n")

        context = DiagnosticContext(archive_path=str(cab))
        outcome = ArchiveProbe(extract_cab=extract).run(context)
        assert [r.file_name for r in context.file_records] == ["dosvc.log"]
        assert "0x80D01001" in outcome.summary_rows[0].result

    def test_cab_extraction_timeout_warns(self, tmp_path):
        cab = tmp_path / "diag.cab"
        cab.write_bytes(b"MSCF")

        def extract(path, destination, timeout=60):
            raise CollaboratorTimeout("expand.exe did not finish within 60s")

        context = DiagnosticContext(archive_path=str(cab))
        outcome = ArchiveProbe(extract_cab=extract).run(context)
        assert [r.status for r in outcome.summary_rows] == [Status.WARN]
        assert [f.severity for f in outcome.findings] == [Severity.WARN]
        assert context.file_records == []


class TestExpandCab:
    def test_deadline_raises_timeout(self):
        with patch("dodiag.diagnostics.probes.archive.run_command",
                   return_value=(RC_TIMEOUT, "", "Timeout after 60s")):
            with pytest.raises(CollaboratorTimeout):
                expand_cab("C:/diag.cab", "C:/tmp", timeout=60)

    def test_failure_raises_unavailable(self):
        with patch("dodiag.diagnostics.probes.archive.run_command",
                   return_value=(1, "", "Can't open input file")):
            with pytest.raises(CollaboratorUnavailable, match="rc=1"):
                expand_cab("C:/diag.cab", "C:/tmp")
