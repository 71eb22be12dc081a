"""API route registration."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from flask import Response, abort, g, jsonify, make_response, request

from ..auth import SESSION_COOKIE, is_admin, require_login, session_token
from ..deps import get_datastore


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _uploaded_input_file() -> Tuple[Optional[str], Optional[str]]:
    upload = request.files.get("input_file")
    if upload is None or not upload.filename:
        return None, None
    content = upload.read()
    if not content:
        return None, None
    return content.decode("utf-8", errors="replace"), upload.filename


def register_api_routes(app) -> None:

    @app.get("/api/problems")
    def api_problems() -> Any:
        datastore = get_datastore()
        user = getattr(g, "user", None)
        problems = [datastore.problem_summary(problem, user) for problem in datastore.list_problems_newest_first()]
        return jsonify({"problems": problems, "user": user["username"] if user else None})

    @app.post("/api/problems")
    def api_create_problem() -> Any:
        user = require_login()
        data = _payload()
        title = str(data.get("title", "")).strip()
        description = str(data.get("description", ""))
        correct_answer = str(data.get("correct_answer", ""))
        if not title or not description or not correct_answer:
            return jsonify({"error": "title, description and correct_answer are required"}), 400
        input_file, input_file_name = _uploaded_input_file()
        if input_file is None and data.get("input_file"):
            input_file = str(data["input_file"])
            input_file_name = data.get("input_file_name") or None
        problem = get_datastore().create_problem(
            title,
            description,
            correct_answer,
            user["id"],
            input_file=input_file,
            input_file_name=input_file_name,
        )
        return jsonify({"id": problem["id"]}), 201

    @app.get("/api/problems/<problem_id>")
    def api_problem_detail(problem_id: str) -> Any:
        datastore = get_datastore()
        problem = datastore.get_problem(problem_id)
        if not problem:
            return jsonify({"error": "Problem not found"}), 404
        user = getattr(g, "user", None)
        payload = datastore.problem_summary(problem, user)
        payload["description"] = problem.get("description", "")
        payload["input_file_name"] = datastore.input_file_name_for(problem) if problem.get("input_file") else None
        payload["can_delete"] = bool(user and problem.get("author_id") == user["id"])
        payload["submissions"] = [
            {
                "id": sub["id"],
                "answer": sub.get("answer", ""),
                "is_correct": bool(sub.get("is_correct")),
                "submitted_at": sub.get("submitted_at"),
            }
            for sub in (datastore.user_submissions_for_problem(user["id"], problem_id) if user else [])
        ]
        return jsonify(payload)

    @app.get("/api/problems/<problem_id>/download")
    def api_download_input(problem_id: str) -> Any:
        datastore = get_datastore()
        problem = datastore.get_problem(problem_id)
        if not problem or not problem.get("input_file"):
            return jsonify({"error": "Input file not found"}), 404
        filename = datastore.input_file_name_for(problem)
        return Response(
            problem["input_file"],
            mimetype="text/plain",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/api/problems/<problem_id>/submit")
    def api_submit(problem_id: str) -> Any:
        user = require_login()
        datastore = get_datastore()
        problem = datastore.get_problem(problem_id)
        if not problem:
            return jsonify({"error": "Problem not found"}), 404
        if datastore.has_solved(user["id"], problem_id):
            return jsonify({"solved": True, "submission": None})
        answer = str(_payload().get("answer", ""))
        submission = datastore.create_submission(problem_id, user["id"], answer)
        if submission is None:
            return jsonify({"error": "Problem not found"}), 404
        return jsonify({"solved": submission["is_correct"], "submission": submission}), 201

    @app.post("/api/problems/<problem_id>/delete")
    def api_delete_problem(problem_id: str) -> Any:
        user = require_login()
        datastore = get_datastore()
        problem = datastore.get_problem(problem_id)
        if not problem:
            return jsonify({"error": "Problem not found"}), 404
        if problem.get("author_id") != user["id"] and not is_admin(user):
            abort(403)
        datastore.delete_problem(problem_id, requester_id=user["id"])
        return jsonify({"success": True})

    @app.post("/logout")
    def logout() -> Any:
        get_datastore().revoke_session(session_token())
        response = make_response(jsonify({"success": True}))
        response.delete_cookie(SESSION_COOKIE, path="/")
        return response
