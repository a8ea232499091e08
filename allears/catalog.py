"""Static catalog: app config, tier definitions and interview questions."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from allears.models import InterviewQuestion, TierDefinition

logger = logging.getLogger(__name__)

DEFAULT_TIER_KEY = "starter"

DEFAULT_TIERS: Dict[str, Dict[str, Any]] = {
    "starter": {
        "label": "Starter",
        "pages": 3,
        "features": ["Mobile-first responsive design", "Contact form", "Basic SEO setup"],
        "cta": "Launch",
        "upsell": "Upgrade to Pro for services and testimonials pages.",
    },
    "pro": {
        "label": "Pro",
        "pages": 6,
        "features": ["Mobile-first responsive design", "Contact form", "SEO setup", "Reviews section"],
        "cta": "Grow",
    },
    "premium": {
        "label": "Premium",
        "pages": 10,
        "features": [
            "Mobile-first responsive design",
            "Contact form",
            "SEO setup",
            "Booking integration",
            "Blog / resources",
            "Analytics dashboard",
        ],
        "cta": "Dominate",
    },
}

DEFAULT_QUESTIONS: List[Dict[str, str]] = [
    {"id": "business_type", "question": "What kind of business is this website for?"},
    {"id": "primary_goal", "question": "What is the #1 thing the website must achieve?"},
    {"id": "audience", "question": "Who is your ideal customer?"},
    {"id": "features", "question": "Which features do you need? (comma or line separated)"},
    {"id": "style", "question": "Any sites, colors or styles you like?"},
    {"id": "deadline", "question": "When do you need it live?"},
]


@dataclass
class AppSettings:
    version: str = "1.0"
    modes: List[str] = field(default_factory=lambda: ["text", "voice"])
    autosave: bool = True
    default_language: str = "en-US"


@dataclass
class Catalog:
    app: AppSettings = field(default_factory=AppSettings)
    supported_languages: List[str] = field(default_factory=lambda: ["en-US"])
    require_consent: bool = True
    tiers: Dict[str, TierDefinition] = field(default_factory=dict)
    questions: List[InterviewQuestion] = field(default_factory=list)

    @property
    def voice_enabled(self) -> bool:
        return "voice" in self.app.modes

    def tier(self, key: Optional[str]) -> TierDefinition:
        """Tier for `key`, or a minimal fallback when the key is unknown."""
        key = key or DEFAULT_TIER_KEY
        if key in self.tiers:
            return self.tiers[key]
        return TierDefinition(key=key, label=key, page_cap=3, features=(), cta="Launch")

    def question_text(self, qid: str) -> str:
        for q in self.questions:
            if q.id == qid:
                return q.question
        return qid


def _parse_tier(key: str, raw: Dict[str, Any]) -> TierDefinition:
    features = []
    for f in raw.get("features") or []:
        f = str(f).strip()
        if f and f not in features:
            features.append(f)
    return TierDefinition(
        key=key,
        label=str(raw.get("label") or key),
        page_cap=int(raw.get("pages", raw.get("page_cap", 3))),
        features=tuple(features),
        cta=str(raw.get("cta") or "Launch"),
        upsell_note=raw.get("upsell") or raw.get("upsell_note") or None,
    )


def build_catalog(data: Optional[Dict[str, Any]] = None) -> Catalog:
    """Build a Catalog from a raw mapping, falling back to built-in defaults."""
    data = data or {}
    cfg = data.get("config") or {}
    app_raw = cfg.get("app") or {}

    app = AppSettings(
        version=str(app_raw.get("version", "1.0")),
        modes=list(app_raw.get("modes") or ["text", "voice"]),
        autosave=bool(app_raw.get("autosave", True)),
        default_language=str(app_raw.get("defaultLanguage", "en-US")),
    )

    tiers_raw = (data.get("tiers") or {}).get("tiers") or DEFAULT_TIERS
    questions_raw = (data.get("questions") or {}).get("coreQuestions") or DEFAULT_QUESTIONS

    return Catalog(
        app=app,
        supported_languages=list((cfg.get("input") or {}).get("supportedLanguages") or [app.default_language]),
        require_consent=bool((cfg.get("safety") or {}).get("requireConsent", True)),
        tiers={str(k): _parse_tier(str(k), v) for k, v in tiers_raw.items()},
        questions=[InterviewQuestion(id=str(q["id"]), question=str(q.get("question", q["id"]))) for q in questions_raw],
    )


def load_catalog(path: Optional[str | Path] = None) -> Catalog:
    """Load the catalog JSON at `path`; defaults when absent or unreadable."""
    if not path:
        return build_catalog()
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Catalog %s unreadable (%s), using defaults", path, e)
        return build_catalog()
    if not isinstance(data, dict):
        logger.warning("Catalog %s is not a JSON object, using defaults", path)
        return build_catalog()
    return build_catalog(data)
