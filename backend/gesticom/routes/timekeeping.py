# Overview: Flask API routes for timekeeping operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_permission
from ..errors import GestiComError
from ..services import timekeeping_service
from ..time_utils import parse_iso_date, to_clock_time
from .labels import CHECKPOINT_LABELS, CHECKPOINT_VALUES, REPORT_STATUS_LABELS, attendance_json, error_response, from_label


timekeeping_bp = Blueprint("timekeeping", __name__, url_prefix="/api/horarios")


@timekeeping_bp.post("/marcar")
@require_auth
@require_permission("CLOCK_IN_OUT")
def mark_route():
    """
    Mark one of today's checkpoints for the caller.

    Body: {"tipo": "entrada" | "inicio_colacion" | "fin_colacion" | "salida"}
    409 with ya_marcado/hora_existente when the checkpoint is already set.
    """
    data = request.get_json(silent=True) or {}
    label = data.get("tipo")
    if not isinstance(label, str) or label not in CHECKPOINT_VALUES:
        return jsonify({"error": "Invalid checkpoint type"}), 400

    try:
        result = timekeeping_service.mark(user_id=g.current_user.id, checkpoint=from_label(CHECKPOINT_VALUES, label))
    except GestiComError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to mark attendance")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "mensaje": f"{label} recorded",
        "tipo": CHECKPOINT_LABELS[result.checkpoint],
        "fecha": result.date.isoformat(),
        "hora": to_clock_time(result.recorded_at),
    }), 200


@timekeeping_bp.get("/mis-registros")
@require_auth
@require_permission("CLOCK_IN_OUT")
def my_records_route():
    limit = request.args.get("limit", type=int)
    records = timekeeping_service.get_history(g.current_user.id, limit)
    return jsonify([attendance_json(r) for r in records]), 200


@timekeeping_bp.get("/estado-colacion")
@require_auth
def break_status_route():
    status = timekeeping_service.get_today_status(g.current_user.id)
    return jsonify({
        "en_colacion": status["on_break"],
        "hora_inicio": to_clock_time(status["break_start"]),
        "hora_fin": to_clock_time(status["break_end"]),
    }), 200


@timekeeping_bp.get("/reportes")
@require_auth
@require_permission("VIEW_TIMEKEEPING")
def report_route():
    """Query params: inicio, fin (YYYY-MM-DD, inclusive)."""
    try:
        start = parse_iso_date(request.args.get("inicio"))
        end = parse_iso_date(request.args.get("fin"))
    except ValueError:
        return jsonify({"error": "Dates must be YYYY-MM-DD"}), 400
    if start is None or end is None:
        return jsonify({"error": "inicio and fin are required"}), 400

    try:
        report = timekeeping_service.get_report(start=start, end=end)
    except GestiComError as e:
        return error_response(e)

    payload = []
    for entry in report:
        worker = entry["user"]
        stats = entry["statistics"]
        payload.append({
            "id": worker.id,
            "nombre": worker.name,
            "rut": worker.national_id,
            "registros": [
                {
                    **attendance_json(row["record"]),
                    "estado": REPORT_STATUS_LABELS[row["status"]],
                    "horas_trabajadas": row["hours"],
                }
                for row in entry["records"]
            ],
            "estadisticas": {
                "diasCompletos": stats["complete_days"],
                "diasIncompletos": stats["incomplete_days"],
                "ausencias": stats["absences"],
                "totalHoras": stats["total_hours"],
            },
        })
    return jsonify(payload), 200


@timekeeping_bp.get("/estadisticas")
@require_auth
@require_permission("VIEW_TIMEKEEPING")
def statistics_route():
    stats = timekeeping_service.get_daily_statistics()
    return jsonify({
        "presentes_hoy": stats["present_today"],
        "total_usuarios": stats["total_workers"],
        "jornada_completa": stats["completed_shifts"],
        "promedio_horas_semana": stats["average_hours_week"],
        "fecha_consulta": stats["date"].isoformat(),
    }), 200
