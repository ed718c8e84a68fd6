# Overview: Service-layer access to the realtime document store; wraps the documents table.

"""
Document Store Service

WHY: The billing core was written against a hosted realtime tree database
(read a path once, overwrite a path, push to a collection, multi-location
update). This service keeps exactly those operations so the rest of the
package never touches SQL directly.

PATHS:
- "medicines"                 -> whole collection as {key: body}
- "sales/<key>"               -> one document
- "medicines/<key>/quantity"  -> nested field inside a document

GUARANTEES:
- One call = one DB transaction (update() of many paths is atomic).
- Nothing is atomic across calls.
- set(..., expected_version=N) is a compare-and-swap on the document version.
"""

from __future__ import annotations

import copy
import logging
import secrets
import time
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import StoreDocument
from pharmapos.time_utils import utcnow


logger = logging.getLogger(__name__)

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


class StoreError(Exception):
    """Raised when the store cannot complete a read or write."""
    pass


class StaleDocumentError(StoreError):
    """Raised when a compare-and-swap write finds a newer document version."""
    pass


def split_path(path: str) -> list[str]:
    parts = [p for p in str(path).strip("/").split("/") if p]
    if not parts:
        raise StoreError("Empty store path")
    return parts


def generate_push_key(now_ms: int | None = None) -> str:
    """
    Generate a time-ordered key: 8 chars of millisecond timestamp followed by
    12 random chars, all drawn from a lexicographically sorted alphabet.
    """
    ts = int(time.time() * 1000) if now_ms is None else now_ms
    stamp = []
    for _ in range(8):
        stamp.append(PUSH_CHARS[ts % 64])
        ts //= 64
    suffix = "".join(secrets.choice(PUSH_CHARS) for _ in range(12))
    return "".join(reversed(stamp)) + suffix


def _dig(body: Any, parts: list[str]) -> Any:
    for part in parts:
        if isinstance(body, dict) and part in body:
            body = body[part]
        elif isinstance(body, list) and part.isdigit() and int(part) < len(body):
            body = body[int(part)]
        else:
            return None
    return body


def _assign(body: dict, parts: list[str], value: Any) -> None:
    node = body
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    if value is None:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = copy.deepcopy(value)


class DocumentStore:
    """Generic read/write/push/update over the documents table."""

    def __init__(self, session=None):
        self.session = session or db.session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, path: str) -> Any:
        parts = split_path(path)
        try:
            if len(parts) == 1:
                rows = (
                    self.session.query(StoreDocument)
                    .filter_by(collection=parts[0])
                    .order_by(StoreDocument.key)
                    .all()
                )
                return {row.key: copy.deepcopy(row.body) for row in rows}

            row = self._row(parts[0], parts[1])
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read {path}: {exc}") from exc

        if row is None:
            return None
        return _dig(copy.deepcopy(row.body), parts[2:])

    def get_versioned(self, path: str) -> tuple[Any, int | None]:
        """Read one whole document with its current version."""
        parts = split_path(path)
        if len(parts) != 2:
            raise StoreError("get_versioned requires a <collection>/<key> path")
        try:
            row = self._row(parts[0], parts[1])
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read {path}: {exc}") from exc
        if row is None:
            return None, None
        return copy.deepcopy(row.body), row.version_id

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def new_key(self, collection: str | None = None) -> str:
        return generate_push_key()

    def set(self, path: str, value: Any, expected_version: int | None = None) -> None:
        """
        Overwrite the value at path. A None value deletes it.

        With expected_version, the owning document must still be at that
        version or StaleDocumentError is raised and nothing is written.
        """
        parts = split_path(path)
        if len(parts) == 1:
            if value is not None and not isinstance(value, dict):
                raise StoreError("A collection can only be set to an object")
            self.replace_collection(parts[0], value or {})
            return

        if expected_version is not None:
            row = self._row(parts[0], parts[1])
            current = row.version_id if row is not None else None
            if current != expected_version:
                raise StaleDocumentError(
                    f"{parts[0]}/{parts[1]} is at version {current}, expected {expected_version}"
                )

        self._apply(parts, value)
        self._commit(path)

    def push(self, collection: str, value: dict) -> str:
        """Append a document under a newly generated key and return the key."""
        key = self.new_key(collection)
        self._apply([collection, key], value)
        self._commit(f"{collection}/{key}")
        return key

    def update(self, updates: dict[str, Any]) -> None:
        """
        Multi-location update: every path is written in a single transaction.
        """
        if not updates:
            return
        for path, value in updates.items():
            self._apply(split_path(path), value)
        self._commit(", ".join(updates.keys()))

    def delete(self, path: str) -> None:
        self.set(path, None)

    def replace_collection(self, collection: str, documents: dict[str, Any]) -> None:
        """Drop every document in a collection and write the given mapping."""
        try:
            self.session.query(StoreDocument).filter_by(collection=collection).delete()
            for key, body in documents.items():
                self.session.add(StoreDocument(
                    collection=collection,
                    key=str(key),
                    body=copy.deepcopy(body),
                    updated_at=utcnow(),
                ))
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError(f"Failed to replace {collection}: {exc}") from exc
        self._commit(collection)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _row(self, collection: str, key: str) -> StoreDocument | None:
        return self.session.query(StoreDocument).filter_by(collection=collection, key=key).first()

    def _apply(self, parts: list[str], value: Any) -> None:
        collection, key, nested = parts[0], parts[1] if len(parts) > 1 else None, parts[2:]
        if key is None:
            raise StoreError("Multi-location updates must address documents, not collections")

        try:
            row = self._row(collection, key)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError(f"Failed to read {collection}/{key}: {exc}") from exc

        if not nested:
            if value is None:
                if row is not None:
                    self.session.delete(row)
                return
            body = copy.deepcopy(value)
        else:
            body = copy.deepcopy(row.body) if row is not None and isinstance(row.body, dict) else {}
            _assign(body, nested, value)

        if row is None:
            row = StoreDocument(collection=collection, key=key, body=body, updated_at=utcnow())
            self.session.add(row)
        else:
            # JSON columns are not mutation-tracked; always assign a new object
            row.body = body
            row.updated_at = utcnow()

    def _commit(self, what: str) -> None:
        try:
            self.session.commit()
        except StaleDataError as exc:
            self.session.rollback()
            raise StaleDocumentError(f"Concurrent write detected on {what}") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Store write failed for %s: %s", what, exc)
            raise StoreError(f"Failed to write {what}: {exc}") from exc
