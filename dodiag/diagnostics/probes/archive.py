"""
Diagnostics archive inspection (.zip, or .cab through expand.exe).

Every member becomes a DiagnosticFileRecord; members are categorised
concurrently and text members are scanned line-by-line for known DO
error codes.  Binary ETL traces are listed but never parsed.
"""
import io
import os
import tempfile
import zipfile
from collections import Counter
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import IO, Callable, Iterator, List, Optional, Tuple

from dodiag.utils.system import RC_TIMEOUT, run_command
from dodiag.utils.threads import guarded_sample, run_all
from ..context import DiagnosticContext, ProbeOutcome
from ..error_codes import DO_DOCS_URL, find_error_codes, lookup
from ..errors import CollaboratorTimeout, CollaboratorUnavailable, MalformedInput
from ..models import (
    Category,
    DiagnosticFileRecord,
    FileCategory,
    RecommendationSeverity,
    Severity,
    Status,
    make_finding,
    make_recommendation,
    make_summary_row,
)
from .base import Probe

ARCHIVE_SUFFIXES = (".zip", ".cab")

_EXTENSION_CATEGORY = {
    ".etl": FileCategory.ETL_LOG,
    ".log": FileCategory.TEXT_LOG,
    ".txt": FileCategory.TEXT_LOG,
    ".xml": FileCategory.CONFIGURATION,
    ".json": FileCategory.CONFIGURATION,
    ".ini": FileCategory.CONFIGURATION,
    ".reg": FileCategory.CONFIGURATION,
    ".config": FileCategory.CONFIGURATION,
    ".zip": FileCategory.ARCHIVE,
    ".cab": FileCategory.ARCHIVE,
    ".7z": FileCategory.ARCHIVE,
}

TEXT_CATEGORIES = (FileCategory.TEXT_LOG, FileCategory.CONFIGURATION)


def validate_archive_path(path) -> bool:
    """True when *path* names an existing .zip or .cab file."""
    if not path:
        return False
    candidate = Path(path)
    return candidate.suffix.lower() in ARCHIVE_SUFFIXES and candidate.is_file()


def categorize_member(name: str, size: int, limit: int) -> FileCategory:
    """Known extensions win; anything else above *limit* is a LargeFile."""
    category = _EXTENSION_CATEGORY.get(os.path.splitext(name)[1].lower())
    if category is not None:
        return category
    if size > limit:
        return FileCategory.LARGE_FILE
    return FileCategory.UNKNOWN


def decode_text(data: bytes) -> str:
    """Decode a log sample; DO writes both UTF-16 and UTF-8 files."""
    if data.startswith((b"\xff\xfe", b"\xfe\xff")):
        return data.decode("utf-16", errors="replace")
    if data.startswith(b"\xef\xbb\xbf"):
        data = data[3:]
    return data.decode("utf-8", errors="replace")


@dataclass
class ArchiveMember:
    """One file inside the archive plus a way to open it."""
    name: str
    size: int
    opener: Callable[[], IO[bytes]]


@dataclass
class MemberReport:
    record: DiagnosticFileRecord
    error_codes: List[str]


def _iter_text_lines(opener: Callable[[], IO[bytes]]) -> Iterator[str]:
    with opener() as fh:
        head = fh.read(2)
    encoding = "utf-16" if head in (b"\xff\xfe", b"\xfe\xff") else "utf-8-sig"
    with opener() as fh:
        for line in io.TextIOWrapper(fh, encoding=encoding, errors="replace"):
            yield line


def inspect_member(member: ArchiveMember, limit: int, sample_bytes: int) -> MemberReport:
    """Categorise, sample and error-code-scan one archive member."""
    category = categorize_member(member.name, member.size, limit)
    sample = None
    codes: List[str] = []
    if category in TEXT_CATEGORIES:
        def read_sample():
            with member.opener() as fh:
                return decode_text(fh.read(sample_bytes))
        sample = guarded_sample(member.size, read_sample, limit)
        if member.size <= limit:
            codes = find_error_codes(_iter_text_lines(member.opener))
    record = DiagnosticFileRecord(member.name, member.size, category, sample)
    return MemberReport(record, codes)


# ── Archive readers ──────────────────────────────────────────
def zip_members(zf: zipfile.ZipFile) -> List[ArchiveMember]:
    return [
        ArchiveMember(info.filename, info.file_size, partial(zf.open, info))
        for info in zf.infolist()
        if not info.is_dir()
    ]


def directory_members(root: str) -> List[ArchiveMember]:
    members = []
    for dirpath, _dirs, files in os.walk(root):
        for filename in sorted(files):
            full = os.path.join(dirpath, filename)
            rel = os.path.relpath(full, root).replace(os.sep, "/")
            members.append(ArchiveMember(rel, os.path.getsize(full), partial(open, full, "rb")))
    return members


def expand_cab(path: str, destination: str, timeout: int = 60) -> None:
    """Extract every file of a .cab with expand.exe."""
    rc, _out, err = run_command(["expand.exe", path, "-F:*", destination], timeout=timeout)
    if rc == RC_TIMEOUT:
        raise CollaboratorTimeout("expand.exe did not finish within %ss" % timeout)
    if rc != 0:
        raise CollaboratorUnavailable("expand.exe failed (rc=%d): %s" % (rc, err.strip()))


class ArchiveProbe(Probe):
    name = "Diagnostics Archive"
    category = Category.ARCHIVE
    failure_advice = "Re-create the diagnostics archive and check it opens in Explorer."

    def __init__(self, extract_cab: Optional[Callable[..., None]] = None):
        super().__init__()
        self._extract_cab = extract_cab or expand_cab

    def collect(self, context: DiagnosticContext) -> ProbeOutcome:
        path = context.archive_path
        if not validate_archive_path(path):
            self.log.warning("Diagnostics archive %r is not an existing .zip or .cab file, skipping", path)
            return ProbeOutcome()

        if Path(path).suffix.lower() == ".zip":
            try:
                with zipfile.ZipFile(path) as zf:
                    reports = self._inspect(zip_members(zf), context)
            except zipfile.BadZipFile as exc:
                raise MalformedInput("%s is not a valid zip archive: %s" % (path, exc))
        else:
            with tempfile.TemporaryDirectory(prefix="dodiag-cab-") as tmp:
                self._extract_cab(path, tmp, timeout=context.config.command_timeout)
                reports = self._inspect(directory_members(tmp), context)

        return self._evaluate(path, reports, context)

    def _inspect(self, members: List[ArchiveMember], context: DiagnosticContext) -> List[MemberReport]:
        cfg = context.config
        tasks = [
            (m.name, partial(inspect_member, m, cfg.sample_size_limit, cfg.sample_bytes))
            for m in members
        ]
        reports = []
        for r in run_all(tasks, cfg.max_parallel):
            if r.ok:
                reports.append(r.value)
            else:
                self.log.warning("Could not read archive member %s: %s", r.name, r.error)
        return reports

    def _evaluate(self, path: str, reports: List[MemberReport], context: DiagnosticContext) -> ProbeOutcome:
        context.add_file_record(*(rep.record for rep in reports))
        counts = Counter(rep.record.category for rep in reports)

        outcome = ProbeOutcome()
        hits: List[Tuple[str, str]] = []
        for rep in reports:
            for code in rep.error_codes:
                hits.append((code, rep.record.file_name))

        seen = []
        for code, file_name in hits:
            entry = lookup(code)
            outcome.findings.append(make_finding(
                self.category,
                "%s found in %s: %s (see ErrorCodes sheet)" % (code, file_name, entry.description),
                Severity.WARN,
            ))
            if code not in seen:
                seen.append(code)
                outcome.recommendations.append(make_recommendation(
                    "Error %s" % code, entry.recommendation, RecommendationSeverity.IMPORTANT, DO_DOCS_URL,
                ))

        breakdown = ", ".join("%s: %d" % (cat.value, counts[cat]) for cat in FileCategory if counts[cat])
        result = "%d file(s) in %s" % (len(reports), os.path.basename(path))
        if breakdown:
            result += " (%s)" % breakdown
        self.log.info("%s, %d error code(s)", result, len(seen))
        outcome.findings.insert(0, make_finding(self.category, result, Severity.INFO))
        if seen:
            outcome.summary_rows.append(make_summary_row(
                self.name, "%s; error codes: %s" % (result, ", ".join(seen)), Status.WARN,
                "Logged Delivery Optimization errors",
            ))
        else:
            outcome.summary_rows.append(make_summary_row(self.name, result, Status.INFO))
        return outcome
