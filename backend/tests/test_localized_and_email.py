"""
Localized text fallback order and best-effort welcome email.
"""
from unittest.mock import MagicMock

from models import Language
from services.email_service import EmailService, login_url
from utils.localized import LocalizedText, pick_language


class TestPickLanguage:

    def test_only_en_selects_english(self):
        assert pick_language("en") == Language.EN
        assert pick_language(" EN ") == Language.EN
        assert pick_language("sv") == Language.SV
        assert pick_language("de") == Language.SV
        assert pick_language(None) == Language.SV


class TestLocalizedText:

    def test_preferred_then_legacy_then_other(self):
        text = LocalizedText(sv="", en="Photos", legacy="Foto")
        assert text.resolve(Language.SV) == "Foto"
        assert text.resolve(Language.EN) == "Photos"
        assert LocalizedText(sv="", en="Photos").resolve(Language.SV) == "Photos"

    def test_filled_never_leaves_a_slot_empty(self):
        filled = LocalizedText(en="Floor plan").filled()
        assert (filled.sv, filled.en, filled.legacy) == ("Floor plan", "Floor plan", "Floor plan")

    def test_legacy_prefers_swedish(self):
        filled = LocalizedText(sv="Homestyling", en="Home staging").filled()
        assert filled.legacy == "Homestyling"

    def test_from_doc(self):
        text = LocalizedText.from_doc({"title": "A", "title_sv": None, "title_en": "B"}, "title")
        assert text == LocalizedText(sv="", en="B", legacy="A")
        assert LocalizedText.from_doc({}, "title").is_empty


class TestWelcomeEmail:

    def _service(self, monkeypatch, token="server-token"):
        monkeypatch.setenv("POSTMARK_SERVER_TOKEN", token)
        return EmailService()

    def test_dev_mode_logs_instead_of_sending(self, monkeypatch):
        monkeypatch.delenv("POSTMARK_SERVER_TOKEN", raising=False)
        service = EmailService()
        assert service.client is None
        assert service.send_welcome_email("anna@example.com", "Anna") is True

    def test_sends_swedish_mail_with_login_link(self, monkeypatch):
        monkeypatch.setenv("APP_URL", "https://valoris.se/")
        service = self._service(monkeypatch)
        service.client = MagicMock()
        service.client.emails.send.return_value = {"MessageID": "msg-1"}

        assert service.send_welcome_email("anna@example.com", "<Anna>") is True
        kwargs = service.client.emails.send.call_args.kwargs
        assert kwargs["To"] == "anna@example.com"
        assert kwargs["Subject"] == "Välkommen till Valoris"
        assert "https://valoris.se/login" in kwargs["TextBody"]
        assert "&lt;Anna&gt;" in kwargs["HtmlBody"]
        assert login_url() == "https://valoris.se/login"

    def test_send_failure_is_swallowed(self, monkeypatch):
        service = self._service(monkeypatch)
        service.client = MagicMock()
        service.client.emails.send.side_effect = RuntimeError("postmark down")
        assert service.send_welcome_email("anna@example.com", "Anna") is False
