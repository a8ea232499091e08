from dataclasses import dataclass, field, asdict, fields
from typing import Dict, Any

from allears.models import normalize_answers

VOICE_FIELDS = ("lang", "continuous", "interim")


@dataclass
class SessionSettings:
    lang: str = "en-US"
    tier: str = "starter"
    industry: str = ""
    consent: bool = False
    continuous: bool = True
    interim: bool = True
    answers: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], defaults: "SessionSettings") -> "SessionSettings":
        """Overlay persisted values on `defaults`, ignoring mistyped entries."""
        out = cls(**asdict(defaults))
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            current = getattr(out, f.name)
            if f.name == "answers":
                if isinstance(value, dict):
                    out.answers = normalize_answers(value)
            elif isinstance(current, bool):
                if isinstance(value, bool):
                    setattr(out, f.name, value)
            elif isinstance(value, str):
                setattr(out, f.name, value)
        return out
