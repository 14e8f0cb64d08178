from catalog.config import Settings


def test_explicit_db_settings_are_kept():
    settings = Settings(db={"url": "sqlite+aiosqlite:///catalog.db", "echo": True})

    assert settings.db.url == "sqlite+aiosqlite:///catalog.db"
    assert settings.db.echo is True


def test_import_defaults():
    settings = Settings()

    assert settings.imports.max_reported_errors == 100
    assert settings.imports.journal_fuzzy_matching is False
    assert settings.uploads.allowed_extensions == [".csv", ".xlsx"]
