from __future__ import annotations

import re

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Category

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def list_categories(*, include_inactive: bool = True) -> list[Category]:
    query = db.session.query(Category)
    if not include_inactive:
        query = query.filter(Category.active.is_(True))
    return query.order_by(Category.name.asc(), Category.id.asc()).all()


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found")
    return category


def create_category(*, name: str, slug: str, active: bool = True) -> Category:
    name = (name or "").strip()
    slug = (slug or "").strip().lower()
    if not name:
        raise ValidationError("name is required")
    if not SLUG_RE.match(slug):
        raise ValidationError("slug must be lowercase letters, digits and hyphens")

    if db.session.query(Category).filter_by(slug=slug).first():
        raise ConflictError(f"Category slug '{slug}' already exists")

    category = Category(name=name, slug=slug, active=bool(active))
    db.session.add(category)
    db.session.commit()
    return category
