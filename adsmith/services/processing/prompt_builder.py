"""
Prompt and text builders for persona portraits.

The portrait prompt is the whole contract with the image collaborator. Its
components always appear in the same order: style, message, themes, subject.
"""

import random
from collections import Counter
from typing import List, Optional, Sequence

from adsmith.domain.models.persona import Persona
from adsmith.infrastructure.constants.generation_constants import (
    DEFAULT_OFFERING,
    DEFAULT_PORTRAIT_RESOLUTION,
    PLATFORM_RESOLUTIONS,
)

PHRASE_ADJECTIVES = [
    "amazing", "innovative", "exciting", "remarkable",
    "incredible", "outstanding", "impressive", "extraordinary",
]
PHRASE_NOUNS = [
    "experience", "solution", "feature", "product",
    "service", "design", "technology", "value",
]
PHRASE_VERBS = [
    "transforms", "elevates", "enhances", "revolutionizes",
    "improves", "optimizes", "maximizes", "delivers",
]

PORTRAIT_QUALITY_SUFFIX = (
    "Photographic head-and-shoulders portrait of a single person, natural lighting, "
    "authentic expression, no text or logos in the image."
)


def generate_random_phrase(rng: Optional[random.Random] = None) -> str:
    """Short "<adjective> <noun> <verb>" tagline."""
    generator = rng if rng is not None else random.Random()
    return (
        f"{generator.choice(PHRASE_ADJECTIVES)} "
        f"{generator.choice(PHRASE_NOUNS)} "
        f"{generator.choice(PHRASE_VERBS)}"
    )


def subject_descriptor(persona: Persona) -> str:
    """``"<race> <gender>, age <ageMin>-<ageMax>"``"""
    race = f"{persona.race} " if persona.race else ""
    return f"{race}{persona.gender.value}, age {persona.age_min}-{persona.age_max}"


def build_portrait_prompt(
    persona: Persona,
    offering_context: Optional[str],
    style: str,
    phrase: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Build the prompt sent to the portrait collaborator.

    The tagline is, in order of preference, the explicit ``phrase``, the
    persona's own tagline, or a freshly generated random phrase.
    """
    message = phrase or persona.tagline or generate_random_phrase(rng)
    offering = (offering_context or "").strip() or DEFAULT_OFFERING

    lines = [
        f"Style: {style}",
        f"Message: '{message}'",
        f"Themes: {', '.join(persona.interests)}",
        f"Subject: {subject_descriptor(persona)}",
        f"Offering: {offering}",
        PORTRAIT_QUALITY_SUFFIX,
    ]
    return "\n".join(lines)


def collect_interests(personas: Sequence[Optional[Persona]], limit: int = 5) -> List[str]:
    """Most frequent interests across personas, ties in first-seen order."""
    counts = Counter()
    for persona in personas:
        if persona is None:
            continue
        for interest in persona.interests:
            counts[interest] += 1
    # Counter.most_common keeps insertion order among equal counts
    return [interest for interest, _ in counts.most_common(limit)]


def generate_persona_summary(offering: Optional[str], personas: Sequence[Optional[Persona]]) -> str:
    present = [persona for persona in personas if persona is not None]
    demographics = ", ".join(
        f"{persona.gender.value} aged {persona.age_min}-{persona.age_max}" for persona in present
    )
    interests = ", ".join(collect_interests(present))
    return (
        f"Target audience for {(offering or '').strip() or DEFAULT_OFFERING}: "
        f"{demographics}. Key interests include {interests}."
    )


def resolution_for_platform(platform: Optional[str]) -> str:
    """First resolution supported by an ad platform, default otherwise."""
    options = PLATFORM_RESOLUTIONS.get(platform or "")
    if not options:
        return DEFAULT_PORTRAIT_RESOLUTION
    return options[0][1]
