"""
Unit tests for catalog loading, tier lookup and persisted settings.

Run: pytest tests/unit/test_catalog.py -v
"""

import json

from allears.catalog import DEFAULT_QUESTIONS, DEFAULT_TIERS, build_catalog, load_catalog
from allears.state import SessionSettings


class TestCatalog:

    def test_defaults(self, catalog):
        assert set(catalog.tiers) == set(DEFAULT_TIERS)
        assert [q.id for q in catalog.questions] == [q["id"] for q in DEFAULT_QUESTIONS]
        assert catalog.voice_enabled
        assert catalog.require_consent

    def test_known_tier(self, catalog):
        pro = catalog.tier("pro")
        assert pro.label == "Pro"
        assert pro.page_cap == 6
        assert pro.cta == "Grow"

    def test_unknown_tier_falls_back(self, catalog):
        t = catalog.tier("enterprise")
        assert (t.key, t.label, t.page_cap, t.features, t.cta) == ("enterprise", "enterprise", 3, (), "Launch")

    def test_missing_tier_key_means_starter(self, catalog):
        assert catalog.tier(None).key == "starter"

    def test_question_text(self, catalog):
        assert catalog.question_text("audience") == "Who is your ideal customer?"
        assert catalog.question_text("nope") == "nope"

    def test_nested_shape(self):
        catalog = build_catalog({
            "config": {
                "app": {"version": "2.1", "modes": ["text"], "autosave": False, "defaultLanguage": "fr-FR"},
                "input": {"supportedLanguages": ["fr-FR", "en-US"]},
                "safety": {"requireConsent": False},
            },
            "tiers": {"tiers": {"solo": {"label": "Solo", "pages": 2, "features": ["A", " A ", "B"], "cta": "Go"}}},
            "questions": {"coreQuestions": [{"id": "q1", "question": "First?"}]},
        })
        assert catalog.app.version == "2.1"
        assert not catalog.voice_enabled
        assert not catalog.app.autosave
        assert catalog.app.default_language == "fr-FR"
        assert catalog.supported_languages == ["fr-FR", "en-US"]
        assert not catalog.require_consent
        assert catalog.tier("solo").features == ("A", "B")
        assert catalog.tier("solo").upsell_note is None
        assert catalog.question_text("q1") == "First?"

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"config": {"app": {"version": "3.0"}}}), encoding="utf-8")
        assert load_catalog(path).app.version == "3.0"

    def test_unreadable_file_uses_defaults(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text("[]", encoding="utf-8")
        assert load_catalog(path).app.version == "1.0"
        assert load_catalog(tmp_path / "missing.json").app.version == "1.0"
        assert load_catalog(None).app.version == "1.0"


class TestSessionSettings:

    def test_round_trip(self):
        s = SessionSettings(lang="de-DE", tier="pro", consent=True, answers={"a": "b"})
        assert SessionSettings.from_dict(s.to_dict(), SessionSettings()) == s

    def test_mistyped_values_ignored(self):
        defaults = SessionSettings(lang="en-GB")
        out = SessionSettings.from_dict(
            {"lang": None, "consent": "yes", "continuous": False, "answers": ["x"], "unknown": 1},
            defaults,
        )
        assert out.lang == "en-GB"
        assert out.consent is False
        assert out.continuous is False
        assert out.answers == {}

    def test_answers_trimmed(self):
        out = SessionSettings.from_dict({"answers": {"a": " x ", "b": "  "}}, SessionSettings())
        assert out.answers == {"a": "x"}

    def test_defaults_not_mutated(self):
        defaults = SessionSettings()
        out = SessionSettings.from_dict({"answers": {"a": "x"}}, defaults)
        assert out.answers == {"a": "x"}
        assert defaults.answers == {}
