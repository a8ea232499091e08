from __future__ import annotations
from typing import Dict, List
import logging

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

TOOL_NAME = "AI All Ears"
RECORD_FALLBACK = "Structured brief unavailable: the record could not be serialized."


class _Record(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Meta(_Record):
    tool: str = TOOL_NAME
    version: str
    generated_at: str


class VoiceFlags(_Record):
    continuous: bool
    live_preview: bool


class Inputs(_Record):
    language: str
    tier_key: str
    tier_label: str
    page_cap: int
    industry: str
    consent: bool
    voice: VoiceFlags


class QuestionEntry(_Record):
    id: str
    question: str


class AnswerEntry(_Record):
    question: str
    answer: str


class Interview(_Record):
    questions: List[QuestionEntry] = Field(default_factory=list)
    answers: Dict[str, AnswerEntry] = Field(default_factory=dict)


class BuildSpec(_Record):
    required_features: List[str]
    detected_goals: List[str]
    pages: List[str]
    cta_text: str
    recommended_stack: List[str]
    deliverables: List[str]


class BriefRecord(_Record):
    """Machine-readable mirror of a generated brief."""
    meta: Meta
    inputs: Inputs
    interview: Interview
    vision: str
    spec: BuildSpec


def dump_record(record: BriefRecord) -> str:
    """
    Pretty JSON for display/persistence. Never raises: a record that cannot be
    serialized yields RECORD_FALLBACK so the UI always has something to show.
    """
    try:
        return record.model_dump_json(by_alias=True, indent=2)
    except (ValueError, TypeError) as e:
        logger.warning("[BRIEF] Record serialization failed: %s", e)
        return RECORD_FALLBACK


def load_record(raw: str) -> BriefRecord:
    return BriefRecord.model_validate_json(raw)
