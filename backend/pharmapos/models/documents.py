from __future__ import annotations

from ..extensions import db


class StoreDocument(db.Model):
    """
    One JSON document in the realtime store, addressed as <collection>/<key>.

    WHY: The billing core treats the store as a generic tree of collections
    (medicines, pharmacyDetailsList, sales, saleCommits, users). Rows keep the
    body as JSON and carry a version counter for compare-and-swap writes.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.UniqueConstraint("collection", "key", name="uq_documents_collection_key"),
        db.Index("ix_documents_collection_key", "collection", "key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    collection = db.Column(db.String(64), nullable=False, index=True)
    key = db.Column(db.String(128), nullable=False)

    body = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}
