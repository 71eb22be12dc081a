"""Admin-facing route registration."""

from __future__ import annotations

from typing import Any

from flask import jsonify

from ..auth import require_admin
from ..deps import get_datastore


def register_admin_routes(app) -> None:

    @app.get("/admin")
    def admin_dashboard() -> Any:
        require_admin()
        datastore = get_datastore()
        users = datastore.list_users()
        problems = datastore.list_problems()
        recent = []
        for sub in datastore.recent_submissions():
            author = datastore.get_user(sub.get("user_id"))
            problem = datastore.get_problem(sub.get("problem_id"))
            recent.append({
                "id": sub["id"],
                "user": author["username"] if author else "unknown",
                "problem": problem["title"] if problem else "unknown",
                "answer": sub.get("answer", ""),
                "is_correct": bool(sub.get("is_correct")),
            })
        return jsonify({
            "users": {
                "total": len(users),
                "items": [{"id": u["id"], "username": u.get("username", "")} for u in users],
            },
            "problems": {
                "total": len(problems),
                "items": [datastore.problem_summary(problem) for problem in problems],
            },
            "submissions": {
                "total": len(datastore.list_submissions()),
                "recent": recent,
            },
            "sessions": {"total": len(datastore.list_sessions())},
        })

    @app.post("/admin/delete-user/<user_id>")
    def admin_delete_user(user_id: str) -> Any:
        require_admin()
        deleted = get_datastore().delete_user(user_id)
        return jsonify({"success": deleted})

    @app.post("/admin/delete-problem/<problem_id>")
    def admin_delete_problem(problem_id: str) -> Any:
        admin = require_admin()
        deleted = get_datastore().delete_problem(problem_id, requester_id=admin["id"])
        return jsonify({"success": deleted})

    @app.post("/admin/delete-submission/<submission_id>")
    def admin_delete_submission(submission_id: str) -> Any:
        require_admin()
        deleted = get_datastore().delete_submission(submission_id)
        return jsonify({"success": deleted})
