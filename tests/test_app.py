"""Tests for ClinicalApp wiring."""

import pytest

from clinassist.app import ClinicalApp
from clinassist.models import Phase, ProviderName, StoredSettings
from clinassist.settings import InMemorySecretStore, SecretStore

from tests.fakes.fake_session import FakeResponse
from tests.fakes.wire import anthropic_lines


class FailingStore(InMemorySecretStore):
    def set(self, api_key, model):
        return "Could not save settings: Permission denied"


@pytest.fixture
def make_app(client, prompt_store, dispatcher, ctx):
    def _make(store: SecretStore = None):
        store = store or InMemorySecretStore(StoredSettings(provider=ProviderName.anthropic, api_key="test-key"))
        return ClinicalApp(store=store, client=client, prompt_store=prompt_store, dispatcher=dispatcher, ctx=ctx)

    return _make


def test_screens_stream_independently(make_app, fake_session):
    app = make_app()
    app.settings.env_overrides = False
    held = fake_session.queue(FakeResponse(lines=anthropic_lines(["drug ", "text"]), hold_after=0))
    app.drug_lookup.set_fields(drug_name="Amoxicillin", weight_input="20 kg")
    app.drug_lookup.submit()
    assert held.holding.wait(5)

    fake_session.queue(FakeResponse(lines=anthropic_lines(["cds text"])))
    app.cds.set_fields(presentation="Fever and rash in a 3 year old")
    app.cds.submit()
    assert app.cds.wait(5)
    assert app.cds.output == "cds text"
    assert app.drug_lookup.is_streaming

    held.release()
    assert app.drug_lookup.wait(5)
    assert app.drug_lookup.output == "drug text"
    assert app.drug_lookup.phase is Phase.completed


def test_save_settings_applies_to_next_request(make_app, fake_session):
    app = make_app(InMemorySecretStore(StoredSettings(provider=ProviderName.anthropic)))
    app.settings.env_overrides = False
    app.cds.set_fields(presentation="Wheezing")
    app.cds.submit()
    assert app.cds.error == "Add an Anthropic API key in Settings."
    assert fake_session.requests == []

    assert app.save_settings("new-key", "claude-4-haiku-20241022") is None
    fake_session.queue(FakeResponse(lines=anthropic_lines(["ok"])))
    app.cds.submit()
    assert app.cds.wait(5)
    request = fake_session.requests[0]
    assert request["headers"]["x-api-key"] == "new-key"
    assert request["json"]["model"] == "claude-4-haiku-20241022"


def test_save_settings_reports_store_failure(make_app, ctx):
    app = make_app(FailingStore(StoredSettings(provider=ProviderName.anthropic)))
    app.settings.env_overrides = False
    assert app.save_settings("k", "claude-4-haiku-20241022") == "Could not save settings: Permission denied"
    assert ctx.errors


def test_save_settings_rejects_unknown_model(make_app):
    app = make_app()
    app.settings.env_overrides = False
    assert "not available" in app.save_settings("k", "gpt-4o")
