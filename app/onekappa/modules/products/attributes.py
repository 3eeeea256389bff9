"""
Category attributes: admin-defined product fields per category, and the values
sellers fill in for each product.

Clients send values as ``[{"attribute_definition_id": 3, "value": "XL"}, ...]``.
The typed keys ``value_text`` / ``value_number`` / ``value_boolean`` are accepted
in place of ``value``.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from app.onekappa.audit import record_event
from app.onekappa.modules.products.models import (
    CategoryAttributeDefinition,
    Product,
    ProductAttributeValue,
    ProductCategory,
)
from app.onekappa.utils import clean_str, iso, parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.onekappa.models import User

ATTRIBUTE_TYPES = ("TEXT", "SELECT", "NUMBER", "BOOLEAN")
_TRUE = ("true", "1", "yes", "on")
_FALSE = ("false", "0", "no", "off")


# ---- Definitions ----

def validate_definition_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors = []
    if not partial or "attribute_name" in payload:
        name = clean_str(payload.get("attribute_name"))
        if not name:
            errors.append("Attribute name is required.")
        elif len(name) > 100:
            errors.append("Attribute name must be at most 100 characters.")
    if not partial or "attribute_type" in payload:
        kind = (clean_str(payload.get("attribute_type")) or "").upper()
        if kind not in ATTRIBUTE_TYPES:
            errors.append(f"Invalid attribute type. Must be one of: {', '.join(ATTRIBUTE_TYPES)}")
    if "options" in payload and payload.get("options") is not None:
        options = payload.get("options")
        if not isinstance(options, list) or not all(clean_str(o) for o in options):
            errors.append("Options must be a list of non-empty strings.")
    if "display_order" in payload and parse_int(payload.get("display_order")) is None:
        errors.append("Display order must be a whole number.")
    return errors


def _clean_options(raw: Any) -> list[str] | None:
    if not raw:
        return None
    return [clean_str(o) for o in raw]


def _check_select_options(kind: str, options: list[str] | None) -> None:
    if kind == "SELECT" and not options:
        raise ValueError("SELECT attributes need at least one option")


def definitions_for_category(s: "Session", category_id: int) -> list[CategoryAttributeDefinition]:
    return (
        s.query(CategoryAttributeDefinition)
        .filter(CategoryAttributeDefinition.category_id == category_id)
        .order_by(CategoryAttributeDefinition.display_order.asc(), CategoryAttributeDefinition.id.asc())
        .all()
    )


def _name_taken(s: "Session", category_id: int, name: str, exclude_id: int | None = None) -> bool:
    q = (
        s.query(CategoryAttributeDefinition.id)
        .filter(CategoryAttributeDefinition.category_id == category_id)
        .filter(CategoryAttributeDefinition.attribute_name == name)
    )
    if exclude_id is not None:
        q = q.filter(CategoryAttributeDefinition.id != exclude_id)
    return q.first() is not None


def create_definition(
    s: "Session", category: ProductCategory, payload: dict, user: "User"
) -> CategoryAttributeDefinition:
    name = clean_str(payload.get("attribute_name")) or ""
    kind = (clean_str(payload.get("attribute_type")) or "").upper()
    options = _clean_options(payload.get("options"))
    _check_select_options(kind, options)
    if _name_taken(s, category.id, name):
        raise ValueError(f'Category already has an attribute named "{name}"')

    now = datetime.utcnow()
    definition = CategoryAttributeDefinition(
        category_id=category.id,
        attribute_name=name,
        attribute_type=kind,
        is_required=parse_bool(payload.get("is_required")),
        display_order=parse_int(payload.get("display_order")) or 0,
        options=options if kind == "SELECT" else None,
        created_at=now,
        updated_at=now,
    )
    s.add(definition)
    s.flush()
    record_event(
        s,
        actor=user,
        action="category_attribute.create",
        entity_type="CategoryAttributeDefinition",
        entity_id=str(definition.id),
        metadata={"category_id": category.id, "attribute_name": name, "attribute_type": kind},
    )
    return definition


def update_definition(
    s: "Session", definition: CategoryAttributeDefinition, payload: dict, user: "User"
) -> CategoryAttributeDefinition:
    changes: dict = {}
    if "attribute_name" in payload:
        name = clean_str(payload.get("attribute_name")) or ""
        if name != definition.attribute_name:
            if _name_taken(s, definition.category_id, name, exclude_id=definition.id):
                raise ValueError(f'Category already has an attribute named "{name}"')
            changes["attribute_name"] = {"old": definition.attribute_name, "new": name}
            definition.attribute_name = name
    if "attribute_type" in payload:
        kind = (clean_str(payload.get("attribute_type")) or "").upper()
        if kind != definition.attribute_type:
            # stored values were coerced for the old type
            if s.query(ProductAttributeValue.id).filter(
                ProductAttributeValue.attribute_definition_id == definition.id
            ).first():
                raise ValueError("Attribute type cannot change once products have values for it")
            changes["attribute_type"] = {"old": definition.attribute_type, "new": kind}
            definition.attribute_type = kind
    if "options" in payload:
        definition.options = _clean_options(payload.get("options"))
        changes["options"] = "updated"
    if "is_required" in payload:
        definition.is_required = parse_bool(payload.get("is_required"))
        changes["is_required"] = definition.is_required
    if "display_order" in payload:
        definition.display_order = parse_int(payload.get("display_order")) or 0
        changes["display_order"] = definition.display_order
    if definition.attribute_type != "SELECT":
        definition.options = None
    _check_select_options(definition.attribute_type, definition.options)
    definition.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="category_attribute.edit",
        entity_type="CategoryAttributeDefinition",
        entity_id=str(definition.id),
        metadata={"changes": changes},
    )
    return definition


def delete_definition(s: "Session", definition: CategoryAttributeDefinition, user: "User") -> None:
    """Delete a definition; product values for it go with it (FK cascade)."""
    s.query(ProductAttributeValue).filter(
        ProductAttributeValue.attribute_definition_id == definition.id
    ).delete(synchronize_session="fetch")
    record_event(
        s,
        actor=user,
        action="category_attribute.delete",
        entity_type="CategoryAttributeDefinition",
        entity_id=str(definition.id),
        metadata={"category_id": definition.category_id, "attribute_name": definition.attribute_name},
    )
    s.delete(definition)


# ---- Product values ----

def validate_attributes_payload(raw: Any) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(isinstance(x, dict) for x in raw):
        return ["attributes must be a list of {attribute_definition_id, value} objects."]
    errors = []
    for item in raw:
        if parse_int(item.get("attribute_definition_id")) is None:
            errors.append("Each attribute needs an attribute_definition_id.")
            break
    return errors


def _raw_value(item: dict) -> Any:
    for key in ("value", "value_text", "value_number", "value_boolean"):
        if key in item:
            return item[key]
    return None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def coerce_value(definition: CategoryAttributeDefinition, value: Any) -> dict:
    """Column values for ``value`` under ``definition``'s type. Raises ValueError when it does not fit."""
    label = definition.attribute_name
    kind = definition.attribute_type
    if kind == "BOOLEAN":
        if isinstance(value, bool):
            return {"value_boolean": value}
        text = str(value).strip().lower()
        if text in _TRUE:
            return {"value_boolean": True}
        if text in _FALSE:
            return {"value_boolean": False}
        raise ValueError(f"{label} must be true or false")
    if kind == "NUMBER":
        if isinstance(value, bool):
            raise ValueError(f"{label} must be a number")
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"{label} must be a number") from None
        if not number.is_finite():
            raise ValueError(f"{label} must be a number")
        return {"value_number": number}
    text = clean_str(value) or ""
    if kind == "SELECT" and text not in (definition.options or []):
        raise ValueError(f"{label} must be one of: {', '.join(definition.options or [])}")
    return {"value_text": text}


def set_product_attributes(
    s: "Session",
    product: Product,
    raw: list[dict] | None,
    *,
    require_all: bool = False,
) -> dict:
    """
    Upsert ``product``'s attribute values from ``raw`` and drop values whose
    definition is not part of the product's current category. A blank value
    clears the attribute. With ``require_all`` every required definition of the
    category must end up with a value. Returns a change summary for the audit row.
    """
    definitions = {d.id: d for d in definitions_for_category(s, product.category_id)} if product.category_id else {}
    current = {v.attribute_definition_id: v for v in product.attribute_values}
    changes: dict = {}

    for def_id, value in list(current.items()):
        if def_id not in definitions:
            product.attribute_values.remove(value)
            del current[def_id]
            changes.setdefault("dropped", []).append(def_id)

    for item in raw or []:
        def_id = parse_int(item.get("attribute_definition_id"))
        definition = definitions.get(def_id)
        if definition is None:
            raise ValueError("Attribute does not belong to the product's category")
        value = _raw_value(item)
        existing = current.get(def_id)
        if _is_blank(value):
            if existing is not None:
                product.attribute_values.remove(existing)
                del current[def_id]
                changes.setdefault("cleared", []).append(definition.attribute_name)
            continue
        columns = {"value_text": None, "value_number": None, "value_boolean": None, **coerce_value(definition, value)}
        if existing is None:
            existing = ProductAttributeValue(attribute_definition_id=def_id, definition=definition)
            product.attribute_values.append(existing)
            current[def_id] = existing
        for column, v in columns.items():
            setattr(existing, column, v)
        changes.setdefault("set", []).append(definition.attribute_name)

    if require_all:
        missing = [d.attribute_name for d in definitions.values() if d.is_required and d.id not in current]
        if missing:
            raise ValueError(f"Missing required attribute: {', '.join(missing)}")
    return changes


# ---- Serialization ----

def attribute_display_value(v: ProductAttributeValue) -> Any:
    if v.value_boolean is not None:
        return v.value_boolean
    if v.value_number is not None:
        n = v.value_number
        return int(n) if n == n.to_integral_value() else float(n)
    return v.value_text


def serialize_attribute_value(v: ProductAttributeValue) -> dict:
    d = v.definition
    return {
        "id": v.id,
        "attribute_definition_id": v.attribute_definition_id,
        "attribute_name": d.attribute_name if d else None,
        "attribute_type": d.attribute_type if d else None,
        "display_order": d.display_order if d else 0,
        "value": attribute_display_value(v),
        "value_text": v.value_text,
        "value_number": None if v.value_number is None else float(v.value_number),
        "value_boolean": v.value_boolean,
    }


def serialize_definition(d: CategoryAttributeDefinition) -> dict:
    return {
        "id": d.id,
        "category_id": d.category_id,
        "attribute_name": d.attribute_name,
        "attribute_type": d.attribute_type,
        "is_required": d.is_required,
        "display_order": d.display_order,
        "options": d.options,
        "created_at": iso(d.created_at),
        "updated_at": iso(d.updated_at),
    }
