import pytest

from sitecheck import __main__ as cli
from sitecheck.database import create_session_factory
from sitecheck.models import Audit


@pytest.fixture
def db_settings(settings, tmp_path, monkeypatch):
    configured = settings.model_copy(update={"DATABASE_URL": f"sqlite:///{tmp_path / 'cli.db'}"})
    monkeypatch.setattr(cli, "get_settings", lambda: configured)
    return configured


def test_parser_rejects_unknown_modules():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["check", "https://acme.example/", "--module", "blog"])


def test_init_db_then_create_audit(db_settings, capsys):
    assert cli.main(["init-db"]) == 0
    assert cli.main([
        "create", "https://acme.example/", "--email", "owner@acme.example", "-m", "security", "-m", "social",
    ]) == 0
    audit_id = capsys.readouterr().out.strip()

    with create_session_factory(db_settings.DATABASE_URL)() as session:
        audit = session.get(Audit, audit_id)
        assert audit.status == "pending"
        assert sorted(m.module_key for m in audit.modules) == ["security", "social"]
