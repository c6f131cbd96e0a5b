# linkvault_app/services/links.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import re
import uuid
from urllib.parse import urlparse

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..errors import NotFound, SlugTaken, ValidationError
from ..extensions import db
from ..models.link import Link, LinkFile, CATEGORIES

SLUG_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,119}$")
COUNTERS = ("views", "clicks")
URL_SCHEMES = ("http", "https")

# column widths in models/link.py
TITLE_MAX = 255
FILE_NAME_MAX = 255
FILE_TYPE_MAX = 120
FILE_ID_MAX = 120
SHARE_URL_MAX = 512
ORIGIN_MAX = SHARE_URL_MAX - len("/share/") - 120


# ---------- store ----------
def count_links(user_id: str) -> int:
    return int(db.session.query(func.count(Link.id)).filter(Link.user_id == user_id).scalar() or 0)


def sum_file_bytes(user_id: str) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(LinkFile.size_bytes), 0))
        .join(Link, LinkFile.link_id == Link.id)
        .filter(Link.user_id == user_id, Link.is_file.is_(True))
        .scalar()
    )
    return int(total or 0)


def list_links(user_id: str) -> list[Link]:
    return Link.query.filter_by(user_id=user_id).order_by(Link.created_at.desc(), Link.id.desc()).all()


def find_link(link_id: int, user_id: str | None = None) -> Link | None:
    q = Link.query.filter_by(id=link_id)
    if user_id is not None:
        q = q.filter_by(user_id=user_id)
    return q.first()


def find_by_slug(slug: str) -> Link | None:
    return Link.query.filter_by(custom_slug=slug).first()


def slug_exists(slug: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(Link.id).filter(Link.custom_slug == slug)
    if exclude_id is not None:
        q = q.filter(Link.id != exclude_id)
    return q.first() is not None


def add_link(user_id: str, fields: dict, files: list[dict], slug: str, share_url: str) -> Link:
    """Stage a link and its files in the current transaction (flush, no commit)."""
    link = Link(user_id=user_id, custom_slug=slug, share_url=share_url, **fields)
    for pos, f in enumerate(files):
        link.files.append(LinkFile(position=pos, **f))
    db.session.add(link)
    db.session.flush()
    return link


def delete_links(*criteria) -> int:
    """Delete every link matching the criteria (and its files); returns the count."""
    ids = [i for (i,) in db.session.query(Link.id).filter(*criteria).all()]
    if not ids:
        return 0
    LinkFile.query.filter(LinkFile.link_id.in_(ids)).delete(synchronize_session=False)
    deleted = Link.query.filter(Link.id.in_(ids)).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def increment_counter(field: str, *, link_id: int | None = None, slug: str | None = None) -> Link | None:
    if field not in COUNTERS:
        raise ValueError(f"unknown counter: {field}")
    crit = Link.id == link_id if link_id is not None else Link.custom_slug == slug
    column = getattr(Link, field)
    stmt = update(Link).where(crit).values({field: column + 1}).execution_options(synchronize_session=False)
    if not db.session.execute(stmt).rowcount:
        db.session.rollback()
        return None
    db.session.commit()
    return Link.query.filter(crit).first()


# ---------- validation ----------
def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")
    return slug[:100].rstrip("-") or "link"


def validate_slug(slug) -> str:
    if not isinstance(slug, str) or not SLUG_RE.match(slug.strip()):
        raise ValidationError("Custom slug must be 1-120 letters, digits, '-' or '_'.")
    return slug.strip()


def resolve_slug(requested, title: str) -> str:
    """Explicit slugs must be free; slugs derived from the title get a numeric suffix."""
    if requested:
        slug = validate_slug(requested)
        if slug_exists(slug):
            raise SlugTaken(slug)
        return slug
    base = slugify(title)
    slug, i = base, 2
    while slug_exists(slug):
        slug = f"{base}-{i}"
        i += 1
    return slug


def share_url_for(origin: str, slug: str) -> str:
    return f"{origin.rstrip('/')}/share/{slug}"


def usable_origin(origin) -> bool:
    """An Origin header short enough to fit a share URL."""
    return isinstance(origin, str) and 0 < len(origin.rstrip("/")) <= ORIGIN_MAX


def normalize_url(url) -> str:
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("url is required for non-file links")
    url = url.strip()
    # "host:port/path" parses with the host as scheme
    if "://" not in url and urlparse(url).scheme.lower() not in URL_SCHEMES:
        url = "https://" + url
    return url


def _bounded(value: str, label: str, max_len: int) -> str:
    if len(value) > max_len:
        raise ValidationError(f"{label} must be at most {max_len} characters")
    return value


def _text(data: dict, key: str, default=None, max_len: int | None = None):
    value = data.get(key, default)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    value = value.strip()
    return _bounded(value, key, max_len) if max_len else value


def _category(value) -> str:
    if value in (None, ""):
        return "work"
    if value not in CATEGORIES:
        raise ValidationError(f"category must be one of: {', '.join(CATEGORIES)}")
    return value


def _file_entry(raw) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError("each file must be an object")
    name = raw.get("name")
    payload = raw.get("data")
    size = raw.get("size")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("file name is required")
    if not isinstance(payload, str) or not payload:
        raise ValidationError(f"file '{name}' has no data")
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        raise ValidationError(f"file '{name}' has an invalid size")
    mime_type = raw.get("type") or "application/octet-stream"
    if not isinstance(mime_type, str):
        raise ValidationError(f"file '{name}' has an invalid type")
    return {
        "file_key": _bounded(str(raw.get("id") or uuid.uuid4().hex), "file id", FILE_ID_MAX),
        "name": _bounded(name.strip(), "file name", FILE_NAME_MAX),
        "mime_type": _bounded(mime_type, "file type", FILE_TYPE_MAX),
        "size_bytes": size,
        "preview": raw.get("preview"),
        "payload": payload,
    }


def validate_link_payload(data) -> tuple[dict, list[dict]]:
    """Returns (link fields, file entries) or raises ValidationError."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON body")
    title = _text(data, "title", "", TITLE_MAX)
    if not title:
        raise ValidationError("title is required")
    is_file = bool(data.get("isFile"))
    fields = {
        "title": title,
        "description": _text(data, "description", ""),
        "category": _category(data.get("category")),
        "image": _text(data, "image"),
        "is_file": is_file,
        "url": None,
    }
    files = []
    if is_file:
        raw_files = data.get("files")
        if not isinstance(raw_files, list) or not raw_files:
            raise ValidationError("file links need at least one file")
        files = [_file_entry(f) for f in raw_files]
        if data.get("url"):
            fields["url"] = normalize_url(data.get("url"))
    else:
        fields["url"] = normalize_url(data.get("url"))
    return fields, files


# ---------- owner operations ----------
def update_link(user_id: str, link_id: int, data, origin: str) -> Link:
    """Edit title/url/description/category/image/slug; files are fixed at creation."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON body")
    link = find_link(link_id, user_id)
    if not link:
        raise NotFound("Link not found")

    if "title" in data:
        title = _text(data, "title", "", TITLE_MAX)
        if not title:
            raise ValidationError("title is required")
        link.title = title
    if "description" in data:
        link.description = _text(data, "description", "")
    if "category" in data:
        link.category = _category(data.get("category"))
    if "image" in data:
        link.image = _text(data, "image")
    if "url" in data:
        if link.is_file:
            link.url = normalize_url(data["url"]) if data["url"] else None
        else:
            link.url = normalize_url(data["url"])
    if data.get("customSlug") and data["customSlug"] != link.custom_slug:
        slug = validate_slug(data["customSlug"])
        if slug_exists(slug, exclude_id=link.id):
            raise SlugTaken(slug)
        link.custom_slug = slug
        link.share_url = share_url_for(origin, slug)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise SlugTaken(data.get("customSlug") or "")
    return link


def delete_link(user_id: str, link_id: int) -> None:
    # links_created stays as is
    if not delete_links(Link.id == link_id, Link.user_id == user_id):
        raise NotFound("Link not found")


def delete_all_links(user_id: str) -> int:
    return delete_links(Link.user_id == user_id)
