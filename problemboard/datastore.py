"""In-memory record store for the problem board."""

from __future__ import annotations

import logging
import re
import secrets
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import PersistenceFailure
from .persistence import Tables, SnapshotFile, decode_snapshot, empty_tables, encode_snapshot

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_MS = 30 * 24 * 60 * 60 * 1000
RECENT_SUBMISSIONS_LIMIT = 20


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_id() -> str:
    return secrets.token_hex(16)


def answers_match(answer: str, correct_answer: str) -> bool:
    return answer.strip() == correct_answer.strip()


class DataStore:
    """Owns the users, problems, submissions and sessions tables.

    All table access goes through one re-entrant lock so cascade deletes are
    never observed half-applied. Every mutation persists the full snapshot
    before returning; a :class:`PersistenceFailure` from that write reaches the
    caller while the in-memory change stays applied.
    """

    def __init__(self, data_file: Path, session_ttl_ms: int = DEFAULT_SESSION_TTL_MS) -> None:
        self.file = SnapshotFile(data_file)
        self.session_ttl_ms = session_ttl_ms
        self._lock = threading.RLock()
        self._persist_lock = threading.Lock()
        self.users: Dict[str, Dict[str, Any]] = {}
        self.problems: Dict[str, Dict[str, Any]] = {}
        self.submissions: Dict[str, Dict[str, Any]] = {}
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.recover()

    # Durability --------------------------------------------------------

    def _tables(self) -> Tables:
        return {
            "users": self.users,
            "problems": self.problems,
            "submissions": self.submissions,
            "sessions": self.sessions,
        }

    def snapshot(self) -> str:
        with self._lock:
            return encode_snapshot(self._tables())

    def persist(self) -> None:
        with self._persist_lock:
            text = self.snapshot()
            self.file.write(text)

    def recover(self) -> None:
        """Replace every table with the contents of the state file.

        A missing file leaves the tables empty. A file that cannot be decoded
        raises :class:`CorruptDurableState` and leaves the tables untouched.
        """
        text = self.file.read()
        if text is None:
            tables = empty_tables()
            logger.info("No state file at %s, starting with empty tables", self.file.path)
        else:
            tables = decode_snapshot(text)
            logger.info(
                "Loaded state from %s (%d users, %d problems, %d submissions, %d sessions)",
                self.file.path,
                len(tables["users"]),
                len(tables["problems"]),
                len(tables["submissions"]),
                len(tables["sessions"]),
            )
        with self._lock:
            self.users = tables["users"]
            self.problems = tables["problems"]
            self.submissions = tables["submissions"]
            self.sessions = tables["sessions"]

    def _save_store(self) -> None:
        try:
            self.persist()
        except PersistenceFailure:
            logger.error("Persist after mutation failed; change is held in memory only")
            raise

    # Lookups -----------------------------------------------------------

    def get_user(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        with self._lock:
            return self.users.get(user_id)

    def get_problem(self, problem_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not problem_id:
            return None
        with self._lock:
            return self.problems.get(problem_id)

    def get_submission(self, submission_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not submission_id:
            return None
        with self._lock:
            return self.submissions.get(submission_id)

    def get_session(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        if not token:
            return None
        with self._lock:
            return self.sessions.get(token)

    def list_users(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self.users.values())

    def list_problems(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self.problems.values())

    def list_submissions(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self.submissions.values())

    def list_sessions(self) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            return list(self.sessions.items())

    def find_user_by_github_id(self, github_id: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            for user in self.users.values():
                if user.get("github_id") == github_id:
                    return user
        return None

    def submissions_for_problem(self, problem_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [sub for sub in self.submissions.values() if sub.get("problem_id") == problem_id]

    def submissions_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [sub for sub in self.submissions.values() if sub.get("user_id") == user_id]

    def list_problems_newest_first(self) -> List[Dict[str, Any]]:
        return sorted(self.list_problems(), key=lambda p: -p.get("created_at", 0))

    def recent_submissions(self, limit: int = RECENT_SUBMISSIONS_LIMIT) -> List[Dict[str, Any]]:
        items = sorted(self.list_submissions(), key=lambda s: -s.get("submitted_at", 0))
        return items[:limit]

    def user_submissions_for_problem(self, user_id: str, problem_id: str) -> List[Dict[str, Any]]:
        items = [sub for sub in self.submissions_for_problem(problem_id) if sub.get("user_id") == user_id]
        items.sort(key=lambda s: -s.get("submitted_at", 0))
        return items

    @staticmethod
    def input_file_name_for(problem: Dict[str, Any]) -> str:
        if problem.get("input_file_name"):
            return problem["input_file_name"]
        return re.sub(r"[^a-z0-9]", "_", problem.get("title", ""), flags=re.IGNORECASE) + "_input.txt"

    # User operations ---------------------------------------------------

    def _insert_user(self, github_id: int, username: str, avatar_url: str) -> Dict[str, Any]:
        with self._lock:
            user = {
                "id": generate_id(),
                "github_id": github_id,
                "username": username,
                "avatar_url": avatar_url,
            }
            self.users[user["id"]] = user
        return user

    def create_user(self, github_id: int, username: str, avatar_url: str) -> Dict[str, Any]:
        user = self._insert_user(github_id, username, avatar_url)
        self._save_store()
        return user

    def login_external_user(
        self,
        github_id: int,
        username: str,
        avatar_url: str,
        ttl_ms: Optional[int] = None,
    ) -> Tuple[Dict[str, Any], str]:
        """Find or create the user for an external account and open a session.

        An existing user keeps its stored fields; nothing is refreshed on
        re-login.
        """
        with self._lock:
            user = self.find_user_by_github_id(github_id)
            created = user is None
            if created:
                user = self._insert_user(github_id, username, avatar_url)
        if created:
            self._save_store()
        token = self.create_session(user["id"], ttl_ms)
        return user, token

    def delete_user(self, user_id: str) -> bool:
        with self._lock:
            existed = user_id in self.users
            owned_problems = {pid for pid, p in self.problems.items() if p.get("author_id") == user_id}
            for pid in owned_problems:
                del self.problems[pid]
            doomed = [
                sid
                for sid, sub in self.submissions.items()
                if sub.get("problem_id") in owned_problems or sub.get("user_id") == user_id
            ]
            for sid in doomed:
                del self.submissions[sid]
            tokens = [token for token, s in self.sessions.items() if s.get("user_id") == user_id]
            for token in tokens:
                del self.sessions[token]
            self.users.pop(user_id, None)
        logger.info(
            "Deleted user %s (%d problems, %d submissions, %d sessions)",
            user_id,
            len(owned_problems),
            len(doomed),
            len(tokens),
        )
        self._save_store()
        return existed

    # Problem operations ------------------------------------------------

    def create_problem(
        self,
        title: str,
        description: str,
        correct_answer: str,
        author_id: str,
        input_file: Optional[str] = None,
        input_file_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        problem = {
            "id": generate_id(),
            "title": title,
            "description": description,
            "input_file": input_file,
            "input_file_name": input_file_name,
            "correct_answer": correct_answer,
            "author_id": author_id,
            "created_at": _now_ms(),
        }
        with self._lock:
            self.problems[problem["id"]] = problem
        self._save_store()
        return problem

    def delete_problem(self, problem_id: str, requester_id: Optional[str] = None) -> bool:
        """Remove a problem and all of its submissions.

        Ownership and admin checks belong to the caller.
        """
        with self._lock:
            existed = self.problems.pop(problem_id, None) is not None
            doomed = [sid for sid, sub in self.submissions.items() if sub.get("problem_id") == problem_id]
            for sid in doomed:
                del self.submissions[sid]
        logger.info("Deleted problem %s for %s (%d submissions)", problem_id, requester_id or "unspecified", len(doomed))
        self._save_store()
        return existed

    # Submission operations ---------------------------------------------

    def create_submission(self, problem_id: str, user_id: str, answer: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            problem = self.problems.get(problem_id)
            if not problem:
                return None
            submission = {
                "id": generate_id(),
                "problem_id": problem_id,
                "user_id": user_id,
                "answer": answer,
                "is_correct": answers_match(answer, problem.get("correct_answer", "")),
                "submitted_at": _now_ms(),
            }
            self.submissions[submission["id"]] = submission
        self._save_store()
        return submission

    def delete_submission(self, submission_id: str) -> bool:
        with self._lock:
            existed = self.submissions.pop(submission_id, None) is not None
        self._save_store()
        return existed

    # Session operations ------------------------------------------------

    def create_session(self, user_id: str, ttl_ms: Optional[int] = None) -> str:
        ttl = self.session_ttl_ms if ttl_ms is None else ttl_ms
        token = generate_id()
        with self._lock:
            while token in self.sessions:
                token = generate_id()
            self.sessions[token] = {"user_id": user_id, "expires_at": _now_ms() + ttl}
        self._save_store()
        return token

    def resolve_session(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """Return the live user behind ``token``.

        An expired session is dropped on sight. The removal is picked up by
        the next persist rather than written here.
        """
        if not token:
            return None
        with self._lock:
            session = self.sessions.get(token)
            if session is None:
                return None
            if session.get("expires_at", 0) <= _now_ms():
                del self.sessions[token]
                return None
            return self.users.get(session.get("user_id"))

    def revoke_session(self, token: Optional[str]) -> None:
        if not token:
            return
        with self._lock:
            self.sessions.pop(token, None)
        self._save_store()

    def purge_expired_sessions(self, persist: bool = True) -> int:
        now = _now_ms()
        with self._lock:
            expired = [token for token, s in self.sessions.items() if s.get("expires_at", 0) <= now]
            for token in expired:
                del self.sessions[token]
        if expired and persist:
            self._save_store()
        return len(expired)

    # Statistics --------------------------------------------------------

    def problem_stats(self, problem_id: str) -> Tuple[int, int]:
        attempts = set()
        solves = set()
        with self._lock:
            for sub in self.submissions.values():
                if sub.get("problem_id") != problem_id:
                    continue
                attempts.add(sub.get("user_id"))
                if sub.get("is_correct"):
                    solves.add(sub.get("user_id"))
        return len(attempts), len(solves)

    def has_solved(self, user_id: str, problem_id: str) -> bool:
        with self._lock:
            for sub in self.submissions.values():
                if sub.get("problem_id") == problem_id and sub.get("user_id") == user_id and sub.get("is_correct"):
                    return True
        return False

    def problem_summary(self, problem: Dict[str, Any], viewer: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        author = self.get_user(problem.get("author_id"))
        attempts, solves = self.problem_stats(problem["id"])
        return {
            "id": problem["id"],
            "title": problem.get("title", ""),
            "author": author["username"] if author else "unknown",
            "created_at": problem.get("created_at"),
            "has_input_file": bool(problem.get("input_file")),
            "attempts": attempts,
            "solves": solves,
            "solved": self.has_solved(viewer["id"], problem["id"]) if viewer else False,
        }
