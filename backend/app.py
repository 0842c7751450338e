"""
PLD Report Compositor - Backend API

Flask application exposing report generation, report metadata and downloads.
"""

import os
import logging
from datetime import datetime
from flask import Flask, request, jsonify, send_file, send_from_directory
from flask_cors import CORS
from werkzeug.security import safe_join

import config
import database as db
import report_generator
from exceptions import NotFoundError, RenderError, ReportError, ValidationError
from dataset import ReportFormat, ReportKind
from links import build_public_download_url

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend

MIME_TYPES = {
    "PDF": "application/pdf",
    "DOCX": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    RenderError: 500,
}

db.init_db()


def _error_response(error: ReportError):
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(error, cls)), 500)
    if status >= 500:
        logger.error(f"Report generation failed: {error}", exc_info=True)
    else:
        logger.info(f"Report request rejected ({status}): {error}")
    return jsonify({"error": str(error)}), status


def _parse_topic_ids(raw):
    if not raw:
        return None
    ids = [part.strip() for part in raw.split(",") if part.strip()]
    return ids or None


def _with_urls(record: dict) -> dict:
    url = build_public_download_url(record.get("filePath") or "", config.PUBLIC_BASE_URL)
    return {
        **record,
        "url": url,
        "downloadUrl": f"/api/reports/{record['id']}/download",
    }


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat()
    })


@app.route('/api/users/<user_id>/reports', methods=['POST'])
def create_user_report(user_id):
    """
    Generate a FULL or PARTIAL report.

    Query params: type (FULL|PARTIAL), format (PDF|DOCX), topicIds (comma separated)
    """
    try:
        kind = report_generator.parse_report_kind(request.args.get('type'))
        if kind == ReportKind.BUILDER:
            raise ValidationError("Use /reports/builder para o relatório do builder")
        if kind == ReportKind.FORM:
            raise ValidationError("Use /reports/forms/<id> para o relatório de formulário")
        report_format = report_generator.parse_report_format(request.args.get('format'))
        record = report_generator.generate_user_report(
            user_id,
            kind=kind,
            report_format=report_format,
            topic_ids=_parse_topic_ids(request.args.get('topicIds')),
        )
    except ReportError as e:
        return _error_response(e)

    return jsonify(_with_urls(record)), 201


@app.route('/api/users/<user_id>/reports/builder', methods=['POST'])
def create_builder_report(user_id):
    """Generate the builder-mode report. JSON body: {name, metadata}."""
    body = request.get_json(silent=True) or {}
    try:
        report_format = report_generator.parse_report_format(
            request.args.get('format'), default=ReportFormat.DOCX
        )
        metadata = body.get('metadata')
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("metadata deve ser um objeto")
        record = report_generator.generate_builder_report(
            user_id,
            report_format=report_format,
            name=body.get('name'),
            metadata=metadata,
        )
    except ReportError as e:
        return _error_response(e)

    return jsonify(_with_urls(record)), 201


@app.route('/api/users/<user_id>/reports/forms/<form_id>', methods=['POST'])
def create_form_report(user_id, form_id):
    """Render a stored builder form snapshot. Query params: format (PDF|DOCX, PDF by default)"""
    try:
        report_format = report_generator.parse_report_format(request.args.get('format'))
        record = report_generator.generate_form_report(
            user_id, form_id, report_format=report_format
        )
    except ReportError as e:
        return _error_response(e)

    return jsonify(_with_urls(record)), 201


@app.route('/api/users/<user_id>/reports', methods=['GET'])
def list_user_reports(user_id):
    """List a user's reports, newest first."""
    return jsonify({"reports": [_with_urls(r) for r in db.get_reports_for_user(user_id)]})


@app.route('/api/reports/<report_id>', methods=['GET'])
def get_report(report_id):
    """Get report metadata with its public URL."""
    record = db.get_report(report_id)
    if not record:
        return jsonify({"error": "Relatório não encontrado"}), 404
    return jsonify(_with_urls(record))


@app.route('/api/reports/<report_id>/download', methods=['GET'])
def download_report(report_id):
    """Stream a generated report file."""
    record = db.get_report(report_id)
    if not record or not record.get("filePath"):
        return jsonify({"error": "Relatório não encontrado"}), 404

    filename = os.path.basename(record["filePath"].replace("\\", "/"))
    path = safe_join(config.REPORTS_FOLDER, filename)
    if not path or not os.path.exists(path):
        return jsonify({"error": "Arquivo do relatório não encontrado"}), 404

    return send_file(
        path,
        mimetype=MIME_TYPES.get(record.get("format"), "application/octet-stream"),
        as_attachment=True,
        download_name=filename,
    )


@app.route('/uploads/<path:filename>', methods=['GET'])
def serve_upload(filename):
    """Serve stored uploads and reports at the paths used inside the documents."""
    return send_from_directory(config.UPLOAD_FOLDER, filename)


if __name__ == '__main__':
    port = int(os.getenv("BACKEND_PORT", "3001"))
    print("Starting PLD Report Compositor...")
    print(f"Backend API running on http://localhost:{port}")
    print(f"Database: {config.DATABASE_URL}")
    app.run(debug=True, host='0.0.0.0', port=port)
