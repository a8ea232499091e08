"""Keyword scan that maps draft text onto goal/feature labels."""

from typing import List, Tuple

# Ordered: labels are emitted in the order of their first matching row
GOAL_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("booking", "Booking / scheduling"),
    ("appointment", "Booking / scheduling"),
    ("schedule", "Booking / scheduling"),
    ("contact", "Contact form"),
    ("store", "E-commerce / store"),
    ("shop", "E-commerce / store"),
    ("checkout", "E-commerce / store"),
    ("payment", "Online payments"),
    ("quote", "Quote requests"),
    ("blog", "Blog / content"),
    ("newsletter", "Email list / newsletter"),
    ("email list", "Email list / newsletter"),
    ("gallery", "Gallery / portfolio"),
    ("portfolio", "Gallery / portfolio"),
    ("review", "Reviews / testimonials"),
    ("testimonial", "Reviews / testimonials"),
    ("login", "User accounts"),
    ("account", "User accounts"),
    ("map", "Location / map"),
    ("location", "Location / map"),
    ("chat", "Live chat"),
    ("seo", "SEO"),
)


def extract_goals(text: str) -> List[str]:
    lowered = (text or "").lower()
    goals: List[str] = []
    for keyword, label in GOAL_KEYWORDS:
        if label not in goals and keyword in lowered:
            goals.append(label)
    return goals
