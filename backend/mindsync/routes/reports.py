# Overview: Flask API routes for reports; every figure comes from the reporting facade.

from flask import Blueprint, g, jsonify, request

from ..decorators import json_errors, require_business
from ..services import reporting_service

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _period_args() -> dict:
    return {
        "period": request.args.get("period", reporting_service.PERIOD_THIS_MONTH),
        "custom_start": request.args.get("start"),
        "custom_end": request.args.get("end"),
    }


@reports_bp.get("/summary")
@json_errors
@require_business
def summary_report():
    """
    Query params:
        period: today | this_week | last_7_days | this_month | last_month |
                this_year | last_year | custom  (default this_month)
        start, end: ISO dates, used with period=custom
    """
    args = _period_args()
    report = reporting_service.build_report(
        g.business_id,
        args["period"],
        custom_start=args["custom_start"],
        custom_end=args["custom_end"],
    )
    return jsonify(report.to_dict()), 200


@reports_bp.get("/income-statement")
@json_errors
@require_business
def income_statement_report():
    args = _period_args()
    statement = reporting_service.income_statement(
        g.business_id,
        args["period"],
        custom_start=args["custom_start"],
        custom_end=args["custom_end"],
    )
    return jsonify(statement.to_dict()), 200


@reports_bp.get("/monthly-trend")
@json_errors
@require_business
def monthly_trend_report():
    points = reporting_service.monthly_series(g.business_id)
    return jsonify({"items": [p.to_dict() for p in points], "count": len(points)}), 200


@reports_bp.get("/dashboard")
@json_errors
@require_business
def dashboard_report():
    return jsonify(reporting_service.dashboard_summary(g.business_id).to_dict()), 200
