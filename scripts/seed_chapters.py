#!/usr/bin/env python3
"""
Seed reference data: event types, product categories, industries, professions
and (optionally) chapters.

Usage:
    python scripts/seed_chapters.py
    python scripts/seed_chapters.py "Chapter Roster.xlsx"
    python scripts/seed_chapters.py chapters.csv

Chapter files need a header row. Recognized columns (case-insensitive):
    name, type, status, chartered, province, city, state, contact_email

Idempotent: chapters are matched by name and updated in place.
"""
from __future__ import annotations

import csv
import os
import sys
from datetime import datetime
from pathlib import Path

# Ensure repo root is on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy.orm import Session

from app.onekappa.modules.catalog.models import Industry, Profession
from app.onekappa.modules.catalog.service import seed_entries
from app.onekappa.modules.chapters.models import Chapter
from app.onekappa.modules.events.models import EventType
from app.onekappa.modules.products.models import ProductCategory
from scripts._db_utils import script_session

EVENT_TYPES = [
    ("social", "Social gatherings and mixers"),
    ("philanthropy", "Philanthropic events and fundraisers"),
    ("professional", "Professional development and networking"),
    ("formal", "Formal events and galas"),
    ("sports", "Sports and athletic events"),
    ("educational", "Educational workshops and seminars"),
    ("community_service", "Community service and volunteer work"),
    ("alumni", "Alumni events and reunions"),
    ("other", "Other events"),
]

PRODUCT_CATEGORIES = [
    "Apparel",
    "Outerwear",
    "Footwear",
    "Accessories",
    "Electronics",
    "Home Goods",
    "Art & Prints",
    "Books & Media",
    "Heritage / Legacy Item",
    "Cigar Lounge Essentials",
]

INDUSTRIES = [
    "Accounting", "Advertising", "Aerospace", "Agriculture", "Architecture", "Automotive",
    "Banking", "Biotechnology", "Broadcasting", "Chemical", "Civil Engineering", "Communications",
    "Computer Hardware", "Computer Software", "Consulting", "Construction", "Consumer Goods",
    "Cybersecurity", "Data Science", "Education", "Energy", "Engineering", "Entertainment",
    "Environmental", "Fashion", "Finance", "Food & Beverage", "Government", "Healthcare",
    "Hospitality", "Human Resources", "Insurance", "Investment Banking", "Legal", "Logistics",
    "Manufacturing", "Marketing", "Media", "Medical Devices", "Nonprofit", "Pharmaceuticals",
    "Philanthropy", "Public Relations", "Real Estate", "Retail", "Sales", "Social Services",
    "Sports", "Telecommunications", "Transportation", "Travel", "Utilities", "Venture Capital",
    "Other",
]

PROFESSIONS = [
    "Accountant", "Actuary", "Architect", "Attorney", "Business Analyst", "Business Owner",
    "CEO/Executive", "Civil Engineer", "Consultant", "Data Analyst", "Data Scientist", "Dentist",
    "Designer", "Developer/Software Engineer", "Doctor/Physician", "Educator/Teacher", "Engineer",
    "Entrepreneur", "Financial Advisor", "Healthcare Professional", "Human Resources",
    "Investment Banker", "Marketing Professional", "Nurse", "Pharmacist", "Project Manager",
    "Real Estate Agent", "Sales Professional", "Social Worker", "Therapist", "Veterinarian",
    "Other",
]

CHAPTER_COLUMNS = ("name", "type", "status", "chartered", "province", "city", "state", "contact_email")


def _normalize_text(val) -> str:
    return str(val).strip() if val is not None else ""


def _parse_int(val) -> int | None:
    if val is None:
        return None
    if isinstance(val, int):
        return val
    if isinstance(val, float):
        return int(val)
    s = str(val).strip()
    if not s:
        return None
    try:
        return int(float(s))
    except ValueError:
        return None


def seed_event_types(s: Session) -> int:
    created = 0
    for order, (key, description) in enumerate(EVENT_TYPES, start=1):
        row = s.query(EventType).filter(EventType.key == key).one_or_none()
        if row:
            continue
        s.add(EventType(key=key, description=description, display_order=order, is_active=True))
        created += 1
    return created


def seed_product_categories(s: Session) -> int:
    created = 0
    for order, name in enumerate(PRODUCT_CATEGORIES, start=1):
        row = s.query(ProductCategory).filter(ProductCategory.name == name).one_or_none()
        if row:
            continue
        s.add(ProductCategory(name=name, display_order=order))
        created += 1
    return created


def _read_xlsx(path: Path) -> list[dict]:
    from openpyxl import load_workbook

    wb = load_workbook(path, data_only=True)
    ws = wb.active
    rows = list(ws.iter_rows(values_only=True))
    if not rows:
        return []
    headers = [_normalize_text(h).lower().replace(" ", "_") for h in rows[0]]
    out = []
    for raw in rows[1:]:
        record = {headers[i]: raw[i] for i in range(min(len(headers), len(raw))) if headers[i]}
        out.append(record)
    return out


def _read_csv(path: Path) -> list[dict]:
    with path.open(newline="", encoding="utf-8-sig") as fh:
        reader = csv.DictReader(fh)
        return [{(k or "").strip().lower().replace(" ", "_"): v for k, v in row.items()} for row in reader]


def read_chapter_rows(path: Path) -> list[dict]:
    if path.suffix.lower() in (".xlsx", ".xlsm"):
        return _read_xlsx(path)
    return _read_csv(path)


def import_chapters(s: Session, rows: list[dict]) -> dict[str, int]:
    stats = {"created": 0, "updated": 0, "skipped": 0}
    for row in rows:
        name = _normalize_text(row.get("name"))
        if not name:
            stats["skipped"] += 1
            continue
        values = {
            "type": _normalize_text(row.get("type")) or None,
            "status": _normalize_text(row.get("status")) or None,
            "chartered": _parse_int(row.get("chartered")),
            "province": _normalize_text(row.get("province")) or None,
            "city": _normalize_text(row.get("city")) or None,
            "state": _normalize_text(row.get("state")) or None,
            "contact_email": _normalize_text(row.get("contact_email")).lower() or None,
        }
        chapter = s.query(Chapter).filter(Chapter.name == name).one_or_none()
        if chapter is None:
            chapter = Chapter(name=name)
            s.add(chapter)
            stats["created"] += 1
        else:
            stats["updated"] += 1
        for field, value in values.items():
            if value is not None:
                setattr(chapter, field, value)
        if values["status"]:
            chapter.is_active = values["status"].lower() != "inactive"
        chapter.updated_at = datetime.utcnow()
    return stats


def seed_reference_data(*, database_url: str | None = None, chapters_file: str | None = None) -> None:
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///onekappa.db").strip()
    with script_session(db_url) as s:
        n_types = seed_event_types(s)
        n_cats = seed_product_categories(s)
        n_industries = seed_entries(s, Industry, INDUSTRIES)
        n_professions = seed_entries(s, Profession, PROFESSIONS)
        print(f"Event types created: {n_types}")
        print(f"Product categories created: {n_cats}")
        print(f"Industries created: {n_industries}")
        print(f"Professions created: {n_professions}")
        if chapters_file:
            path = Path(chapters_file)
            if not path.exists():
                raise FileNotFoundError(f"Chapter file not found: {path}")
            stats = import_chapters(s, read_chapter_rows(path))
            print(f"Chapters: {stats['created']} created, {stats['updated']} updated, {stats['skipped']} skipped")


def main() -> None:
    chapters_file = sys.argv[1] if len(sys.argv) > 1 else None
    seed_reference_data(chapters_file=chapters_file)


if __name__ == "__main__":
    main()
