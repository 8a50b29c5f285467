from __future__ import annotations

import json
import os
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from storefront.config import settings
from storefront.errors import NotFoundError

Where = Sequence[Tuple[str, str, Any]]


def _connect() -> sqlite3.Connection:
    os.makedirs(os.path.dirname(settings.db_path) or ".", exist_ok=True)
    conn = sqlite3.connect(settings.db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    conn = _connect()
    try:
        with open(os.path.join(os.path.dirname(__file__), "schema.sql"), "r", encoding="utf-8") as f:
            conn.executescript(f.read())
        conn.commit()
    finally:
        conn.close()


def server_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_doc_id() -> str:
    return uuid.uuid4().hex[:20]


# ---------------- documents ----------------

def _load(row: sqlite3.Row) -> Dict[str, Any]:
    data = json.loads(row["data"])
    data["id"] = data.get("id", row["doc_id"])
    return data


def _dump(data: Dict[str, Any]) -> str:
    return json.dumps(data, default=str)


def add_doc(collection: str, data: Dict[str, Any]) -> str:
    doc_id = new_doc_id()
    set_doc(collection, doc_id, data)
    return doc_id


def set_doc(collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
    doc_id = str(doc_id)
    conn = _connect()
    try:
        payload = dict(data)
        if merge:
            row = conn.execute(
                "SELECT doc_id, data FROM documents WHERE collection=? AND doc_id=?",
                (collection, doc_id),
            ).fetchone()
            if row:
                existing = json.loads(row["data"])
                existing.update(payload)
                payload = existing
        conn.execute(
            "INSERT INTO documents(collection, doc_id, data) VALUES(?,?,?) "
            "ON CONFLICT(collection, doc_id) DO UPDATE SET data=excluded.data",
            (collection, doc_id, _dump(payload)),
        )
        conn.commit()
    finally:
        conn.close()


def get_doc(collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
    conn = _connect()
    try:
        row = conn.execute(
            "SELECT doc_id, data FROM documents WHERE collection=? AND doc_id=?",
            (collection, str(doc_id)),
        ).fetchone()
        return _load(row) if row else None
    finally:
        conn.close()


def update_doc(collection: str, doc_id: str, data: Dict[str, Any]) -> None:
    if get_doc(collection, doc_id) is None:
        raise NotFoundError(f"No document to update: {collection}/{doc_id}")
    set_doc(collection, doc_id, data, merge=True)


def delete_doc(collection: str, doc_id: str) -> bool:
    conn = _connect()
    try:
        cur = conn.execute(
            "DELETE FROM documents WHERE collection=? AND doc_id=?",
            (collection, str(doc_id)),
        )
        conn.commit()
        return cur.rowcount > 0
    finally:
        conn.close()


def _matches(doc: Dict[str, Any], field: str, op: str, value: Any) -> bool:
    actual = doc.get(field)
    if op == "==":
        return actual == value
    if op == "!=":
        return actual != value
    if op == "in":
        return actual in value
    if op == "array-contains":
        return isinstance(actual, list) and value in actual
    if actual is None:
        return False
    if op == "<":
        return actual < value
    if op == "<=":
        return actual <= value
    if op == ">":
        return actual > value
    if op == ">=":
        return actual >= value
    raise ValueError(f"unsupported operator: {op}")


def query_docs(
    collection: str,
    where: Optional[Where] = None,
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    conn = _connect()
    try:
        rows = conn.execute(
            "SELECT doc_id, data FROM documents WHERE collection=? ORDER BY rowid",
            (collection,),
        ).fetchall()
    finally:
        conn.close()

    docs = [_load(r) for r in rows]
    for field, op, value in where or ():
        docs = [d for d in docs if _matches(d, field, op, value)]

    if order_by:
        # documents missing the field sort last either way
        present = [d for d in docs if d.get(order_by) is not None]
        missing = [d for d in docs if d.get(order_by) is None]
        present.sort(key=lambda d: d[order_by], reverse=descending)
        docs = present + missing

    if limit is not None:
        docs = docs[:limit]
    return docs


def increment_field(collection: str, doc_id: str, field: str, amount: float = 1) -> None:
    conn = _connect()
    try:
        conn.execute("BEGIN IMMEDIATE")
        row = conn.execute(
            "SELECT data FROM documents WHERE collection=? AND doc_id=?",
            (collection, str(doc_id)),
        ).fetchone()
        if not row:
            conn.execute("ROLLBACK")
            raise NotFoundError(f"No document to update: {collection}/{doc_id}")
        data = json.loads(row["data"])
        data[field] = (data.get(field) or 0) + amount
        conn.execute(
            "UPDATE documents SET data=? WHERE collection=? AND doc_id=?",
            (_dump(data), collection, str(doc_id)),
        )
        conn.commit()
    finally:
        conn.close()


# ---------------- key-value (local storage) ----------------

def kv_get(client_id: str, key: str) -> Optional[str]:
    conn = _connect()
    try:
        row = conn.execute(
            "SELECT value FROM kv_store WHERE client_id=? AND key=?",
            (client_id, key),
        ).fetchone()
        return row["value"] if row else None
    finally:
        conn.close()


def kv_set(client_id: str, key: str, value: str) -> None:
    conn = _connect()
    try:
        conn.execute(
            "INSERT INTO kv_store(client_id, key, value, updated_at) VALUES(?,?,?,?) "
            "ON CONFLICT(client_id, key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at",
            (client_id, key, value, server_timestamp()),
        )
        conn.commit()
    finally:
        conn.close()


def kv_delete(client_id: str, keys: Optional[Iterable[str]] = None) -> None:
    conn = _connect()
    try:
        if keys is None:
            conn.execute("DELETE FROM kv_store WHERE client_id=?", (client_id,))
        else:
            conn.executemany(
                "DELETE FROM kv_store WHERE client_id=? AND key=?",
                [(client_id, k) for k in keys],
            )
        conn.commit()
    finally:
        conn.close()


# ---------------- credentials / sessions ----------------

def add_credentials(uid: str, email: str, password_hash: Optional[str], provider: str) -> None:
    conn = _connect()
    try:
        conn.execute(
            "INSERT INTO credentials(uid, email, password_hash, provider, created_at) VALUES(?,?,?,?,?)",
            (uid, email, password_hash, provider, server_timestamp()),
        )
        conn.commit()
    finally:
        conn.close()


def find_credentials(email: str) -> Optional[Dict[str, Any]]:
    conn = _connect()
    try:
        row = conn.execute(
            "SELECT uid, email, password_hash, provider FROM credentials WHERE email=?",
            (email,),
        ).fetchone()
        return dict(row) if row else None
    finally:
        conn.close()


def add_session(token_hash: str, uid: str, expires_at: str) -> None:
    conn = _connect()
    try:
        conn.execute(
            "INSERT INTO sessions(token_hash, uid, created_at, expires_at) VALUES(?,?,?,?)",
            (token_hash, uid, server_timestamp(), expires_at),
        )
        conn.commit()
    finally:
        conn.close()


def find_session(token_hash: str) -> Optional[Dict[str, Any]]:
    conn = _connect()
    try:
        row = conn.execute(
            "SELECT token_hash, uid, created_at, expires_at FROM sessions WHERE token_hash=?",
            (token_hash,),
        ).fetchone()
        return dict(row) if row else None
    finally:
        conn.close()


def delete_session(token_hash: str) -> None:
    conn = _connect()
    try:
        conn.execute("DELETE FROM sessions WHERE token_hash=?", (token_hash,))
        conn.commit()
    finally:
        conn.close()


def delete_user_sessions(uid: str) -> int:
    conn = _connect()
    try:
        cur = conn.execute("DELETE FROM sessions WHERE uid=?", (uid,))
        conn.commit()
        return cur.rowcount
    finally:
        conn.close()


def prune_expired_sessions(now: str) -> int:
    conn = _connect()
    try:
        cur = conn.execute("DELETE FROM sessions WHERE expires_at<=?", (now,))
        conn.commit()
        return cur.rowcount
    finally:
        conn.close()


def record_login_failure(email: str) -> None:
    conn = _connect()
    try:
        conn.execute(
            "INSERT INTO login_failures(email, failed_at) VALUES(?,?)",
            (email, server_timestamp()),
        )
        conn.commit()
    finally:
        conn.close()


def count_login_failures(email: str, since: str) -> int:
    conn = _connect()
    try:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM login_failures WHERE email=? AND failed_at>=?",
            (email, since),
        ).fetchone()
        return int(row["n"])
    finally:
        conn.close()


def clear_login_failures(email: str) -> None:
    conn = _connect()
    try:
        conn.execute("DELETE FROM login_failures WHERE email=?", (email,))
        conn.commit()
    finally:
        conn.close()


def prune_login_failures(before: str) -> int:
    conn = _connect()
    try:
        cur = conn.execute("DELETE FROM login_failures WHERE failed_at<?", (before,))
        conn.commit()
        return cur.rowcount
    finally:
        conn.close()
