"""Dashboard listing, editor and export endpoints for snagging reports."""
import io

from flask import Blueprint, current_app, jsonify, request, send_file
from flask_login import login_required

from models import REPORT_TEXT_FIELDS, SNAG_PATCH_FIELDS, photo_to_dict, report_to_dict, snag_to_dict
from utils import update_engine
from utils.aggregator import count_snags, room_counts
from utils.image_utils import decode_photo, ingest_photos, read_upload
from utils.pdf_generator import DocumentGenerationError, generate_report_pdf

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

REPORT_FIELD_ALIASES = {
    "propertyAddress": "property_address",
    "developerName": "developer_name",
    "clientName": "client_name",
    "plotNumber": "plot_number",
    "inspectionDate": "inspection_date",
}


def _repository():
    return current_app.extensions["report_repository"]


def _payload() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def _patch(allowed, aliases=None) -> dict:
    """Request body restricted to known field names, so it can be passed as keyword arguments."""
    aliases = aliases or {}
    patch = {aliases.get(key, key): value for key, value in _payload().items()}
    unknown = set(patch) - set(allowed)
    if unknown:
        raise ValueError(f"Unsupported fields: {', '.join(sorted(unknown))}")
    return patch


def _draft_response(report, status_code: int = 200):
    body = {
        "report": report_to_dict(report),
        "counts": count_snags(report).to_dict(),
        "roomCounts": {room.id: room_counts(room).to_dict() for room in report.rooms},
        "persisted": not _repository().has_unsaved_changes,
    }
    return jsonify(body), status_code


@reports_bp.errorhandler(ValueError)
def invalid_value(error):
    current_app.logger.warning("Rejected report request", extra={"path": request.path, "error": str(error)})
    return jsonify({"error": str(error)}), 400


@reports_bp.route("", methods=["GET"])
@login_required
def list_reports():
    repo = _repository()
    rows = repo.list_saved(
        status=request.args.get("status", "all"),
        query=request.args.get("q", ""),
        sort_by=request.args.get("sort", "date"),
        order=request.args.get("order", "desc"),
    )
    return jsonify({"reports": [row.to_dict() for row in rows], "persisted": not repo.has_unsaved_changes})


@reports_bp.route("", methods=["POST"])
@login_required
def create_report():
    report = _repository().create()
    current_app.logger.info("Report created", extra={"report_id": report.id})
    return _draft_response(report, 201)


@reports_bp.route("/<string:report_id>", methods=["DELETE"])
@login_required
def delete_report(report_id):
    if not _repository().delete(report_id):
        raise update_engine.NotFoundError(f"Report {report_id} not found")
    return "", 204


@reports_bp.route("/<string:report_id>/status", methods=["PATCH"])
@login_required
def change_status(report_id):
    status = _payload().get("status")
    report = _repository().set_status(report_id, status)
    current_app.logger.info("Report status changed", extra={"report_id": report_id, "status": status})
    return jsonify({"id": report.id, "status": report.status, "lastModified": report.last_modified})


@reports_bp.route("/<string:report_id>", methods=["GET"])
@login_required
def open_report(report_id):
    return _draft_response(_repository().open_draft(report_id))


@reports_bp.route("/<string:report_id>", methods=["PATCH"])
@login_required
def update_fields(report_id):
    patch = _patch(REPORT_TEXT_FIELDS, REPORT_FIELD_ALIASES)
    draft = _repository().edit(report_id, update_engine.update_report_fields, report_id, **patch)
    return _draft_response(draft)


@reports_bp.route("/<string:report_id>/save", methods=["POST"])
@login_required
def save_report(report_id):
    report = _repository().save(report_id)
    return _draft_response(report)


@reports_bp.route("/<string:report_id>/close", methods=["POST"])
@login_required
def close_report(report_id):
    _repository().discard_draft(report_id)
    return "", 204


@reports_bp.route("/<string:report_id>/rooms/<string:room_id>/snags", methods=["POST"])
@login_required
def add_snag(report_id, room_id):
    snag = _repository().edit(report_id, update_engine.add_snag, room_id)
    return jsonify(snag_to_dict(snag)), 201


@reports_bp.route("/<string:report_id>/rooms/<string:room_id>/snags/<string:snag_id>", methods=["PATCH"])
@login_required
def update_snag(report_id, room_id, snag_id):
    patch = _patch(SNAG_PATCH_FIELDS)
    draft = _repository().edit(report_id, update_engine.update_snag, room_id, snag_id, **patch)
    return jsonify(snag_to_dict(update_engine.get_snag(draft, room_id, snag_id)))


@reports_bp.route("/<string:report_id>/rooms/<string:room_id>/snags/<string:snag_id>", methods=["DELETE"])
@login_required
def delete_snag(report_id, room_id, snag_id):
    _repository().edit(report_id, update_engine.delete_snag, room_id, snag_id)
    return "", 204


@reports_bp.route("/<string:report_id>/rooms/<string:room_id>/snags/<string:snag_id>/template", methods=["POST"])
@login_required
def apply_template(report_id, room_id, snag_id):
    payload = _payload()
    try:
        index = int(payload.get("index"))
    except (TypeError, ValueError):
        return jsonify({"error": "Template index must be an integer"}), 400
    draft = _repository().edit(
        report_id,
        update_engine.apply_template,
        room_id,
        snag_id,
        payload.get("category") or "",
        index,
    )
    return jsonify(snag_to_dict(update_engine.get_snag(draft, room_id, snag_id)))


@reports_bp.route("/<string:report_id>/rooms/<string:room_id>/snags/<string:snag_id>/photos", methods=["POST"])
@login_required
def upload_photos(report_id, room_id, snag_id):
    repo = _repository()
    # Unknown targets are rejected before any decoding work starts.
    update_engine.get_snag(repo.open_draft(report_id), room_id, snag_id)

    files = [read_upload(f) for f in request.files.getlist("photos") if f]
    if not files:
        return jsonify({"error": "No photos uploaded"}), 400

    def apply_photo(url, name):
        return repo.edit(report_id, update_engine.add_photo, room_id, snag_id, url, name)

    results = ingest_photos(
        files,
        apply_photo,
        max_bytes=int(current_app.config.get("MAX_IMAGE_UPLOAD_BYTES", 8 * 1024 * 1024)),
        max_workers=int(current_app.config.get("PHOTO_DECODE_WORKERS", 4)),
    )
    added = [photo_to_dict(r.photo) for r in results if r.ok]
    errors = [{"filename": r.filename, "error": r.error} for r in results if not r.ok]
    current_app.logger.info(
        "Photos ingested",
        extra={"report_id": report_id, "snag_id": snag_id, "added": len(added), "rejected": len(errors)},
    )
    return jsonify({"photos": added, "errors": errors}), 201 if added else 400


@reports_bp.route(
    "/<string:report_id>/rooms/<string:room_id>/snags/<string:snag_id>/photos/<string:photo_id>",
    methods=["DELETE"],
)
@login_required
def delete_photo(report_id, room_id, snag_id, photo_id):
    _repository().edit(report_id, update_engine.remove_photo, room_id, snag_id, photo_id)
    return "", 204


@reports_bp.route("/<string:report_id>/cover-photo", methods=["PUT"])
@login_required
def put_cover_photo(report_id):
    repo = _repository()
    repo.open_draft(report_id)
    upload = request.files.get("photo")
    if not upload:
        return jsonify({"error": "No photo uploaded"}), 400
    content, name = read_upload(upload)
    url = decode_photo(content, int(current_app.config.get("MAX_IMAGE_UPLOAD_BYTES", 8 * 1024 * 1024)))
    draft = repo.edit(report_id, update_engine.set_cover_photo, url, name)
    return jsonify(photo_to_dict(draft.cover_photo))


@reports_bp.route("/<string:report_id>/cover-photo", methods=["DELETE"])
@login_required
def delete_cover_photo(report_id):
    _repository().edit(report_id, update_engine.clear_cover_photo)
    return "", 204


@reports_bp.route("/<string:report_id>/export", methods=["GET"])
@login_required
def export_report(report_id):
    report = _repository().open_draft(report_id)
    try:
        filename, pdf_bytes = generate_report_pdf(report)
    except DocumentGenerationError as exc:
        current_app.logger.error("Export failed", extra={"report_id": report_id, "error": str(exc)})
        return jsonify({"error": "Unable to generate PDF"}), 500
    return send_file(
        io.BytesIO(pdf_bytes),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=filename,
    )
