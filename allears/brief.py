"""Deterministic synthesis of the project brief (document + structured record)."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional

from allears.catalog import Catalog
from allears.goals import extract_goals
from allears.models import Brief, BriefRequest, TierDefinition
from allears.schema import (
    AnswerEntry,
    BriefRecord,
    BuildSpec,
    Inputs,
    Interview,
    Meta,
    QuestionEntry,
    VoiceFlags,
)

logger = logging.getLogger(__name__)

MAX_WANTED_FEATURES = 25
MAX_FEATURES = 30

CONSENT_MESSAGE = "Consent required: please check the consent box before generating the brief."
EMPTY_INPUT_MESSAGE = "Type something in 'Your Vision' or answer at least one interview question."

# (minimum page cap, pages unlocked); each row adds to the rows above it
PAGE_THRESHOLDS = (
    (0, ("Home (high-converting hero + CTA)", "About (trust + story)", "Contact (form + map/CTA)")),
    (5, ("Services / Offers", "Testimonials / Reviews")),
    (7, ("Booking / Calendar", "FAQ")),
    (10, ("Resources / Blog", "Policies (Privacy/Terms)", "Lead Magnet / Download")),
)

DESIGN_HINTS = (
    "Modern, premium, dark fintech UI",
    "Fast, mobile-first, accessible",
    "Clear CTAs, strong trust signals",
    "SEO-ready structure",
)

TECH_NOTES = (
    "Stack: static HTML/CSS/JS (GitHub Pages ready)",
    "Forms: Formspree / Netlify Forms alternative (optional)",
    "Analytics: GA4 + Search Console (optional)",
    "Performance: compress images, lazy-load, minimal JS",
)

NEXT_ACTIONS = (
    "Confirm brand name, logo, colors, and 3 competitors you like",
    "Provide offer/pricing + service area + contact info",
    "Approve the sitemap + must-have features list",
)

RECOMMENDED_STACK = ("HTML", "CSS", "JavaScript", "GitHub Pages")

DELIVERABLES = (
    "High-converting homepage",
    "Sitemap / page list",
    "Content blocks + CTA plan",
    "Basic SEO checklist",
)

DEFAULT_GOAL = "Generate leads and convert visitors into customers."

_LIST_SPLIT = re.compile(r"[\n,]+")


class BriefRejected(ValueError):
    """Synthesis preconditions not met; the message is user-facing guidance."""


def parse_feature_list(raw: Optional[str]) -> List[str]:
    """Split a comma/newline separated answer into trimmed, non-empty entries."""
    if not raw:
        return []
    items = [s.strip() for s in _LIST_SPLIT.split(raw)]
    return [s for s in items if s][:MAX_WANTED_FEATURES]


def merge_features(tier: TierDefinition, wanted: List[str]) -> List[str]:
    merged: List[str] = []
    for f in list(tier.features) + list(wanted):
        if f not in merged:
            merged.append(f)
    return merged[:MAX_FEATURES]


def derive_pages(page_cap: int) -> List[str]:
    pages: List[str] = []
    for minimum, unlocked in PAGE_THRESHOLDS:
        if page_cap >= minimum:
            pages.extend(unlocked)
    return pages[:max(0, page_cap)]


def business_label(request: BriefRequest) -> str:
    if request.answers.get("business_type"):
        return request.answers["business_type"]
    if request.industry:
        return f"{request.industry} business"
    return "a service business"


class BriefSynthesizer:
    """Builds Brief objects from a BriefRequest.

    Output is a pure function of the request, the catalog and the clock
    reading, so two calls with a frozen clock produce identical bytes.
    """

    def __init__(self, catalog: Catalog, clock: Optional[Callable[[], datetime]] = None):
        self.catalog = catalog
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def check(self, request: BriefRequest) -> None:
        if self.catalog.require_consent and not request.consent:
            raise BriefRejected(CONSENT_MESSAGE)
        if request.is_empty:
            raise BriefRejected(EMPTY_INPUT_MESSAGE)

    def synthesize(self, request: BriefRequest) -> Brief:
        self.check(request)

        now = self._clock()
        goals = extract_goals(request.vision)
        features = merge_features(request.tier, parse_feature_list(request.answers.get("features")))
        pages = derive_pages(request.tier.page_cap)

        document = self.render_document(request, now, goals, features, pages)
        record = self.build_record(request, now, goals, features, pages)
        logger.info(
            "[BRIEF] Generated brief tier=%s features=%d pages=%d goals=%d",
            request.tier_key, len(features), len(pages), len(goals),
        )
        return Brief(document=document, record=record, generated_at=now)

    def render_document(
        self,
        request: BriefRequest,
        now: datetime,
        goals: List[str],
        features: List[str],
        pages: List[str],
    ) -> str:
        t = request.tier
        biz = business_label(request)
        goal = request.answers.get("primary_goal") or DEFAULT_GOAL

        copy_blocks = [
            f"Headline: “{t.cta}: {biz} website that converts.”",
            f"Subhead: “{goal}”",
            "Primary CTA: “Get a Free Quote” / “Book a Call” / “Start Now”",
            "Trust: badges, reviews, before/after results, process steps",
        ]

        business = [
            f"- Business: {biz}",
            f"- Primary goal: {goal}",
            f"- Industry keyword: {request.industry or '—'}",
            f"- Tier: {t.label} ({t.page_cap} pages)",
            f"- Language: {request.language}",
            f"- Detected goals: {', '.join(goals) if goals else '—'}",
        ]
        if t.upsell_note:
            business.append(f"- Upgrade note: {t.upsell_note}")

        if features:
            must_have = [f"- {x}" for x in features]
        else:
            must_have = ["- Basic site + contact form"]

        return "\n".join([
            "AI ALL EARS — BUILD-READY WEBSITE PROJECT BRIEF",
            f"Generated: {now.isoformat(timespec='seconds')}",
            "",
            "1) Business & Goal",
            *business,
            "",
            "2) Must-Have Features",
            *must_have,
            "",
            "3) Suggested Pages / Sitemap",
            *[f"{i + 1}. {p}" for i, p in enumerate(pages)],
            "",
            "4) Design & UX Direction",
            *[f"- {v}" for v in DESIGN_HINTS],
            "",
            "5) Content / Copy Blocks",
            *[f"- {c}" for c in copy_blocks],
            "",
            "6) Technical Notes",
            *[f"- {n}" for n in TECH_NOTES],
            "",
            "7) Next Actions",
            *[f"- {a}" for a in NEXT_ACTIONS],
            "",
            "END OF BRIEF",
        ])

    def build_record(
        self,
        request: BriefRequest,
        now: datetime,
        goals: List[str],
        features: List[str],
        pages: List[str],
    ) -> BriefRecord:
        t = request.tier
        return BriefRecord(
            meta=Meta(version=self.catalog.app.version, generated_at=now.isoformat(timespec="seconds")),
            inputs=Inputs(
                language=request.language,
                tier_key=request.tier_key,
                tier_label=t.label,
                page_cap=t.page_cap,
                industry=request.industry,
                consent=request.consent,
                voice=VoiceFlags(continuous=request.continuous, live_preview=request.live_preview),
            ),
            interview=Interview(
                questions=[QuestionEntry(id=q.id, question=q.question) for q in self.catalog.questions],
                answers={
                    qid: AnswerEntry(question=self.catalog.question_text(qid), answer=answer)
                    for qid, answer in request.answers.items()
                },
            ),
            vision=request.vision,
            spec=BuildSpec(
                required_features=features,
                detected_goals=goals,
                pages=pages,
                cta_text=t.cta,
                recommended_stack=list(RECOMMENDED_STACK),
                deliverables=list(DELIVERABLES),
            ),
        )
