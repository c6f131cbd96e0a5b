# linkvault_app/models/link.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime
from ..extensions import db

CATEGORIES = ("work", "personal", "resources", "projects")


class Link(db.Model):
    __tablename__ = "links"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(120), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    url = db.Column(db.Text)                        # only for non-file links
    description = db.Column(db.Text, default="")
    category = db.Column(db.String(20), nullable=False, default="work")
    image = db.Column(db.Text)
    is_file = db.Column(db.Boolean, nullable=False, default=False)
    custom_slug = db.Column(db.String(120), nullable=False, unique=True, index=True)
    share_url = db.Column(db.String(512), nullable=False)
    views = db.Column(db.Integer, nullable=False, default=0)
    clicks = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    files = db.relationship(
        "LinkFile",
        backref="link",
        order_by="LinkFile.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        db.Index("ix_links_user_created", "user_id", "created_at"),
        db.Index("ix_links_user_category", "user_id", "category"),
    )

    def to_dict(self, include_owner: bool = True, include_payload: bool = True) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "description": self.description or "",
            "category": self.category,
            "image": self.image,
            "isFile": bool(self.is_file),
            "files": [f.to_dict(include_payload=include_payload) for f in self.files],
            "customSlug": self.custom_slug,
            "shareUrl": self.share_url,
            "views": self.views or 0,
            "clicks": self.clicks or 0,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_owner:
            data["userId"] = self.user_id
        return data


class LinkFile(db.Model):
    __tablename__ = "link_files"

    id = db.Column(db.Integer, primary_key=True)
    link_id = db.Column(db.Integer, db.ForeignKey("links.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    file_key = db.Column(db.String(120), nullable=False)   # client-side id
    name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(120), nullable=False)
    size_bytes = db.Column(db.BigInteger, nullable=False, default=0)
    preview = db.Column(db.Text)
    payload = db.Column(db.Text, nullable=False)           # opaque blob (base64)

    def to_dict(self, include_payload: bool = True) -> dict:
        data = {
            "id": self.file_key,
            "name": self.name,
            "type": self.mime_type,
            "size": self.size_bytes or 0,
            "preview": self.preview,
        }
        if include_payload:
            data["data"] = self.payload
        return data
