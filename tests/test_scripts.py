import pytest
from openpyxl import Workbook
from werkzeug.security import check_password_hash

from app.onekappa.models import Base, User
from app.onekappa.modules.catalog.models import Industry, Profession
from app.onekappa.modules.chapters.models import Chapter
from app.onekappa.modules.events.models import EventType
from app.onekappa.modules.platform_settings.models import PlatformSetting
from app.onekappa.modules.products.models import ProductCategory
from scripts import init_db, seed_chapters
from scripts._db_utils import create_script_engine, script_session


def _db(tmp_path):
    url = f"sqlite:///{tmp_path / 'scripts.db'}"
    engine = create_script_engine(url)
    Base.metadata.create_all(engine)
    engine.dispose()
    return url


def test_reference_data_is_idempotent(tmp_path):
    url = _db(tmp_path)

    seed_chapters.seed_reference_data(database_url=url)
    seed_chapters.seed_reference_data(database_url=url)

    with script_session(url) as s:
        assert s.query(EventType).count() == len(seed_chapters.EVENT_TYPES)
        assert s.query(ProductCategory).count() == len(seed_chapters.PRODUCT_CATEGORIES)
        assert s.query(Industry).count() == len(seed_chapters.INDUSTRIES) == 54
        assert s.query(Profession).count() == len(seed_chapters.PROFESSIONS)
        last = s.query(Industry).order_by(Industry.display_order.desc()).first()
        assert last.name == "Other"
        first = s.query(EventType).order_by(EventType.display_order).first()
        assert (first.key, first.display_order) == ("social", 1)


def test_chapter_csv_import_updates_in_place(tmp_path):
    url = _db(tmp_path)
    csv_path = tmp_path / "chapters.csv"
    csv_path.write_text(
        "Name,Type,Status,Chartered,Province,City,State,Contact Email\n"
        "Alpha,Collegiate,Active,1911,Middle Western,Bloomington,IN,Alpha@Example.com\n"
        "Beta,Collegiate,Inactive,1911.0,Middle Western,Lincoln,PA,\n"
        ",Alumni,Active,,,,,\n",
        encoding="utf-8",
    )

    with script_session(url) as s:
        stats = seed_chapters.import_chapters(s, seed_chapters.read_chapter_rows(csv_path))
    assert stats == {"created": 2, "updated": 0, "skipped": 1}

    with script_session(url) as s:
        stats = seed_chapters.import_chapters(s, [{"name": "Alpha", "city": "Indianapolis"}])
    assert stats == {"created": 0, "updated": 1, "skipped": 0}

    with script_session(url) as s:
        alpha = s.query(Chapter).filter(Chapter.name == "Alpha").one()
        beta = s.query(Chapter).filter(Chapter.name == "Beta").one()
        assert alpha.city == "Indianapolis"
        assert alpha.contact_email == "alpha@example.com"
        assert alpha.chartered == 1911
        assert beta.chartered == 1911
        assert beta.is_active is False


def test_chapter_xlsx_import(tmp_path):
    wb = Workbook()
    ws = wb.active
    ws.append(["Name", "Type", "Status", "Chartered", "State"])
    ws.append(["Gamma", "Alumni", "Active", 1915, "KY"])
    path = tmp_path / "roster.xlsx"
    wb.save(path)

    rows = seed_chapters.read_chapter_rows(path)

    assert rows == [{"name": "Gamma", "type": "Alumni", "status": "Active", "chartered": 1915, "state": "KY"}]


def test_seed_only_creates_admin_once(tmp_path, monkeypatch):
    url = _db(tmp_path)
    monkeypatch.setenv("ADMIN_EMAIL", "Root@OneKappa.test")
    monkeypatch.setenv("ADMIN_PASSWORD", "first-password")
    init_db.seed_only(database_url=url)

    monkeypatch.setenv("ADMIN_PASSWORD", "second-password")
    init_db.seed_only(database_url=url)

    with script_session(url) as s:
        admin = s.query(User).filter(User.email == "root@onekappa.test").one()
        assert admin.role_keys == ["admin"]
        assert check_password_hash(admin.password_hash, "first-password")
        keys = {row.key for row in s.query(PlatformSetting).all()}
        assert "steward_platform_fee_percentage" in keys


def test_release_refuses_missing_or_sqlite_prod_database(monkeypatch):
    from scripts import release

    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        release.run_release()

    monkeypatch.setenv("DATABASE_URL", "sqlite:///prod.db")
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError):
        release.run_release()


def test_start_builds_gunicorn_command(monkeypatch):
    from scripts import start

    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("WEB_CONCURRENCY", "3")
    monkeypatch.delenv("GUNICORN_TIMEOUT", raising=False)

    argv = start.gunicorn_argv(start._port())
    assert argv[:2] == ["gunicorn", "app.wsgi:app"]
    assert argv[argv.index("--bind") + 1] == "0.0.0.0:9000"
    assert argv[argv.index("--workers") + 1] == "3"
    assert argv[argv.index("--timeout") + 1] == "60"

    monkeypatch.setenv("PORT", "http")
    with pytest.raises(SystemExit):
        start._port()
