from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import current_actor, login_required
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.correction_service

    @app.route("/attendance/correction-request", methods=["POST"], endpoint="correction_submit")
    @login_required
    def submit():
        payload = request.get_json(silent=True) or request.form.to_dict()
        request_id = service.submit(current_actor(), payload)
        return jsonify({"ok": True, "message": "Correction request submitted", "acr_id": request_id}), 201

    @app.route("/attendance/correction-requests", methods=["GET"], endpoint="correction_list")
    @login_required
    def list_requests():
        args = request.args
        rows, total = service.list_requests(
            current_actor(),
            status=args.get("status"),
            request_date=args.get("date"),
            month=args.get("month"),
            year=args.get("year"),
            page=args.get("page", 1),
            limit=args.get("limit"),
        )
        return jsonify(
            {
                "ok": True,
                "requests": [r.to_dict() for r in rows],
                "total": total,
                "page": int(args.get("page", 1) or 1),
            }
        )

    @app.route("/attendance/correction-request/<int:request_id>", methods=["GET"], endpoint="correction_get")
    @login_required
    def get_request(request_id: int):
        req = service.get_request(current_actor(), request_id)
        return jsonify({"ok": True, "request": req.to_dict()})

    @app.route("/attendance/correct-request/<int:request_id>", methods=["PATCH"], endpoint="correction_review")
    @login_required
    def review(request_id: int):
        data = request.get_json(silent=True) or {}
        req = service.review(
            current_actor(),
            request_id,
            str(data.get("status") or ""),
            data.get("review_comments"),
        )
        return jsonify({"ok": True, "message": f"Request {req.status.value} successfully", "request": req.to_dict()})
