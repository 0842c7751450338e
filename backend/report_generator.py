"""
Report Orchestrator.

One request runs through Validating -> Rendering -> Writing -> Persisting
-> Done, or stops at Rejected. A report row is only persisted after its
file has been flushed and synced to disk.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import config
import database as db
from dataset import (
    BuilderReportOptions,
    FormSnapshot,
    ProgressSummary,
    ReportArtifact,
    ReportFormat,
    ReportKind,
    ReportRequest,
    UserRecord,
)
from docx_renderer import render_builder_report_docx, render_user_report_docx
from exceptions import NotFoundError, RenderError, ReportError, ValidationError
from links import normalize_base_url
from pdf_renderer import render_builder_report_pdf, render_user_report_pdf

logger = logging.getLogger(__name__)

FULL_REPORT_INCOMPLETE = "Relatório final só pode ser gerado com 100% de conclusão"
USER_NOT_FOUND = "Usuário não encontrado"
FORM_NOT_FOUND = "Formulário não encontrado"
FORM_CONTENT_INVALID = "Conteúdo do formulário inválido"

FILENAME_PREFIXES = {
    ReportKind.FULL: "pld-report",
    ReportKind.PARTIAL: "pld-report",
    ReportKind.BUILDER: "pld-builder-report",
    ReportKind.FORM: "pld-form-report",
}


def parse_report_kind(value: Optional[str], default: ReportKind = ReportKind.FULL) -> ReportKind:
    if not value:
        return default
    try:
        return ReportKind(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f"Tipo de relatório inválido: {value}")


def parse_report_format(value: Optional[str], default: ReportFormat = ReportFormat.PDF) -> ReportFormat:
    if not value:
        return default
    try:
        return ReportFormat(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f"Formato de relatório inválido: {value}")


def filename_timestamp(moment: datetime) -> str:
    """UTC ISO timestamp with milliseconds, made filesystem safe: 2026-10-18T12-30-05-123Z."""
    iso = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return iso.replace(":", "-").replace(".", "-")


def build_report_filename(kind: ReportKind, report_format: ReportFormat, subject_id: str,
                          moment: datetime) -> str:
    """subject_id is the form ID for FORM reports and the user ID otherwise."""
    return f"{FILENAME_PREFIXES[kind]}-{subject_id}-{filename_timestamp(moment)}.{report_format.extension}"


def report_display_name(kind: ReportKind, user: UserRecord, name: Optional[str] = None) -> str:
    if kind == ReportKind.BUILDER:
        return f"Relatório PLD Builder - {name or user.name}"
    if kind == ReportKind.FORM:
        return f"Relatório PLD - {name or 'Formulário'}"
    return f"Relatório PLD - {user.name}"


class ReportGenerator:
    """
    Produces one report file per request and hands its metadata to the store.

    Args:
        provider: Object with get_user, get_form_data, get_builder_sections
            and get_form_snapshot
        progress_calculator: Object with calculate_progress
        store: Object with save_report
        reports_dir: Directory the files are written to
        base_url: Public base URL used for links inside the documents
        relative_dir: Prefix of the persisted file path
        clock: Returns the generation time (UTC)
    """

    def __init__(self, provider, progress_calculator, store, reports_dir: str, base_url: str,
                 relative_dir: str = config.REPORTS_RELATIVE_DIR,
                 clock: Optional[Callable[[], datetime]] = None):
        self.provider = provider
        self.progress_calculator = progress_calculator
        self.store = store
        self.reports_dir = reports_dir
        self.base_url = normalize_base_url(base_url)
        self.relative_dir = relative_dir.strip("/")
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def generate(self, request: ReportRequest) -> ReportArtifact:
        artifact, _ = self.run(request)
        return artifact

    def run(self, request: ReportRequest) -> Tuple[ReportArtifact, Dict[str, Any]]:
        """Generate the report and return the artifact with the stored record."""
        logger.info("Validating %s %s report for user %s",
                    request.kind.value, request.format.value, request.user_id)
        user = self.provider.get_user(request.user_id)
        if user is None:
            logger.info("Rejected: user %s not found", request.user_id)
            raise NotFoundError(USER_NOT_FOUND)

        subject_id = request.user_id
        if request.kind == ReportKind.BUILDER:
            options = BuilderReportOptions.from_metadata(request.name, request.metadata)
            sections = self.provider.get_builder_sections()
            render = self._builder_renderer(user, sections, options, request.format)
            display_name = report_display_name(request.kind, user, options.name)
        elif request.kind == ReportKind.FORM:
            snapshot = self._form_snapshot(request.form_id)
            options = BuilderReportOptions.from_metadata(snapshot.display_name, snapshot.metadata)
            render = self._builder_renderer(user, snapshot.builder_sections(), options, request.format)
            display_name = report_display_name(request.kind, user, snapshot.display_name)
            subject_id = snapshot.id
        else:
            dataset = self.provider.get_form_data(request.user_id, request.topic_ids)
            dataset = dataset.filtered(request.topic_ids)
            progress = self._progress(request, dataset.topics)
            if request.kind == ReportKind.FULL and not progress.is_complete:
                logger.info("Rejected: FULL report for user %s at %d%%",
                            request.user_id, progress.percentage)
                raise ValidationError(FULL_REPORT_INCOMPLETE)
            render = self._user_renderer(user, request.kind, progress, dataset, request.format)
            display_name = report_display_name(request.kind, user)

        created_at = self.clock()

        logger.info("Rendering %s report", request.format.value)
        try:
            content = render(created_at)
        except ReportError:
            raise
        except Exception as e:
            logger.error("Rendering failed for user %s", request.user_id, exc_info=True)
            raise RenderError(f"Falha ao gerar o relatório: {e}") from e

        filename = build_report_filename(request.kind, request.format, subject_id, created_at)
        logger.info("Writing %s", filename)
        self._write(os.path.join(self.reports_dir, filename), content)

        artifact = ReportArtifact(
            name=display_name,
            kind=request.kind,
            format=request.format,
            file_path=f"{self.relative_dir}/{filename}",
            user_id=request.user_id,
            created_at=created_at,
        )
        logger.info("Persisting %s", artifact.file_path)
        record = self.store.save_report(artifact)
        logger.info("Done: %s (%d bytes)", artifact.file_path, len(content))
        return artifact, record

    def _form_snapshot(self, form_id: Optional[str]) -> FormSnapshot:
        snapshot = self.provider.get_form_snapshot(form_id) if form_id else None
        if snapshot is None:
            logger.info("Rejected: form %s not found", form_id)
            raise NotFoundError(FORM_NOT_FOUND)
        if not snapshot.is_valid:
            logger.info("Rejected: form %s has no readable content", form_id)
            raise ValidationError(FORM_CONTENT_INVALID)
        return snapshot

    def _progress(self, request: ReportRequest, topics: List) -> ProgressSummary:
        # A topic filter narrows progress to the selected topics
        if request.topic_ids:
            return ProgressSummary.from_topics(topics)
        return self.progress_calculator.calculate_progress(request.user_id)

    def _user_renderer(self, user, kind, progress, dataset, report_format):
        render = render_user_report_pdf if report_format == ReportFormat.PDF else render_user_report_docx
        return lambda created_at: render(user, kind, progress, dataset, self.base_url,
                                         generated_at=_local_time(created_at))

    def _builder_renderer(self, user, sections, options, report_format):
        render = render_builder_report_pdf if report_format == ReportFormat.PDF else render_builder_report_docx
        return lambda created_at: render(user, sections, options, self.base_url,
                                         generated_at=_local_time(created_at))

    def _write(self, path: str, content: bytes):
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
        except OSError as e:
            logger.error("Writing %s failed", path, exc_info=True)
            raise RenderError(f"Falha ao gravar o relatório: {e}") from e


def _local_time(moment: datetime) -> datetime:
    return moment.astimezone() if moment.tzinfo else moment


# =============================================================================
# DATABASE-BACKED ENTRY POINTS
# =============================================================================

def default_generator() -> ReportGenerator:
    return ReportGenerator(
        provider=db,
        progress_calculator=db,
        store=db,
        reports_dir=config.REPORTS_FOLDER,
        base_url=config.PUBLIC_BASE_URL,
    )


def generate_user_report(user_id: str, kind: ReportKind = ReportKind.FULL,
                         report_format: ReportFormat = ReportFormat.PDF,
                         topic_ids: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Generate a FULL or PARTIAL report and persist it.

    Returns:
        The stored report record
    """
    request = ReportRequest(kind=kind, format=report_format, user_id=user_id, topic_ids=topic_ids)
    _, record = default_generator().run(request)
    return record


def generate_builder_report(user_id: str, report_format: ReportFormat = ReportFormat.DOCX,
                            name: Optional[str] = None,
                            metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Generate the builder-mode report and persist it."""
    request = ReportRequest(kind=ReportKind.BUILDER, format=report_format, user_id=user_id,
                            name=name, metadata=metadata)
    _, record = default_generator().run(request)
    return record


def generate_form_report(user_id: str, form_id: str,
                         report_format: ReportFormat = ReportFormat.PDF) -> Dict[str, Any]:
    """Render a stored builder form snapshot for the requesting user and persist it."""
    request = ReportRequest(kind=ReportKind.FORM, format=report_format, user_id=user_id,
                            form_id=form_id)
    _, record = default_generator().run(request)
    return record
