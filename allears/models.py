"""Data models for AI All Ears."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from allears.schema import BriefRecord, dump_record


@dataclass(frozen=True)
class RecognitionResult:
    """A single recognition result from the speech engine."""
    index: int  # Position in the session's result list
    transcript: str
    is_final: bool  # True once the engine will not revise it further

    def to_dict(self):
        return {
            "index": self.index,
            "transcript": self.transcript,
            "is_final": self.is_final
        }


@dataclass(frozen=True)
class InterviewQuestion:
    """One entry of the interview question table."""
    id: str
    question: str

    def to_dict(self):
        return {"id": self.id, "question": self.question}


@dataclass(frozen=True)
class TierDefinition:
    """A package of feature/page entitlements selected by the user."""
    key: str
    label: str
    page_cap: int
    features: tuple = ()
    cta: str = "Launch"
    upsell_note: Optional[str] = None

    def to_dict(self):
        return {
            "key": self.key,
            "label": self.label,
            "page_cap": self.page_cap,
            "features": list(self.features),
            "cta": self.cta,
            "upsell_note": self.upsell_note
        }


@dataclass
class Brief:
    """Synthesized project brief: document text plus structured record."""
    document: str
    record: BriefRecord
    generated_at: datetime

    @property
    def record_json(self) -> str:
        return dump_record(self.record)


def normalize_answers(answers: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Trim answers and drop the empty ones (treated as unanswered)."""
    out: Dict[str, str] = {}
    for qid, value in (answers or {}).items():
        text = str(value or "").strip()
        if text:
            out[str(qid)] = text
    return out


@dataclass
class BriefRequest:
    """Everything the synthesizer reads for one brief."""
    vision: str
    tier_key: str
    tier: TierDefinition
    answers: Dict[str, str] = field(default_factory=dict)
    industry: str = ""
    language: str = "en-US"
    consent: bool = False
    continuous: bool = True
    live_preview: bool = True

    def __post_init__(self):
        self.vision = (self.vision or "").strip()
        self.industry = (self.industry or "").strip()
        self.answers = normalize_answers(self.answers)

    @property
    def is_empty(self) -> bool:
        return not self.vision and not self.answers


def count_words(text: str) -> int:
    t = (text or "").strip()
    if not t:
        return 0
    return len(t.split())


__all__ = [
    "RecognitionResult",
    "InterviewQuestion",
    "TierDefinition",
    "Brief",
    "BriefRequest",
    "normalize_answers",
    "count_words",
]
