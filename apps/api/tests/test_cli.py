"""Tests for the onboarding CLI."""

import pytest
from click.testing import CliRunner

from app import cli as cli_module
from app.db.models import Organization, User


@pytest.fixture
def runner(db, monkeypatch) -> CliRunner:
    monkeypatch.setattr(cli_module, "SessionLocal", lambda: db)
    return CliRunner()


def test_create_org_creates_owner(runner, db):
    result = runner.invoke(
        cli_module.cli,
        [
            "create-org",
            "--owner-email",
            " Founder@Acme.com ",
            "--portal",
            "issuer",
            "--type",
            "COMPANY",
            "--name",
            "Acme Sdn Bhd",
        ],
    )

    assert result.exit_code == 0, result.output
    user = db.query(User).filter(User.email == "founder@acme.com").one()
    org = db.query(Organization).filter(Organization.owner_user_id == user.id).one()
    assert org.portal == "issuer"
    assert org.type == "COMPANY"
    assert org.onboarding_status == "NOT_STARTED"


def test_revoke_sessions_bumps_token_version(runner, db, owner):
    owner_id, email, before = owner.id, owner.email, owner.token_version
    db.commit()

    result = runner.invoke(cli_module.cli, ["revoke-sessions", "--email", email])

    assert result.exit_code == 0, result.output
    assert db.get(User, owner_id).token_version == before + 1


def test_revoke_sessions_unknown_user(runner):
    result = runner.invoke(cli_module.cli, ["revoke-sessions", "--email", "nobody@example.com"])

    assert result.exit_code == 1


def test_configure_provider_reports_outcomes(runner, fake_provider, monkeypatch):
    monkeypatch.setattr(cli_module, "get_provider_client", lambda: fake_provider)

    ok = runner.invoke(
        cli_module.cli, ["configure-provider", "--portal", "investor", "--kind", "INDIVIDUAL"]
    )
    assert ok.exit_code == 0, ok.output
    assert fake_provider.call_names() == ["set_webhook_preferences", "set_form_settings"]

    fake_provider.fail_config = True
    failed = runner.invoke(
        cli_module.cli, ["configure-provider", "--portal", "investor", "--kind", "INDIVIDUAL"]
    )
    assert failed.exit_code == 1
    assert "failed" in failed.output


def test_list_pending_without_sessions(runner):
    result = runner.invoke(cli_module.cli, ["list-pending"])

    assert result.exit_code == 0
    assert "No pending verification sessions" in result.output
