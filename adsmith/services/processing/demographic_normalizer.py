"""
Demographic normalization for AI-returned persona records.

Upstream persona text is loosely typed: gender is free text, interests may
be missing or overlong, ages may arrive as strings. Every function here turns
that into values the Persona model accepts. Randomness comes from an injected
``random.Random`` so batches can be reproduced in tests.
"""

import logging
import random
import re
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from pydantic import ValidationError

from adsmith.domain.models.persona import Gender, Persona, PersonaRaw
from adsmith.infrastructure.constants.generation_constants import DEFAULT_OFFERING
from adsmith.services.generative.exceptions import MalformedResponse

logger = logging.getLogger(__name__)

# 3/10 White, 2/10 Latino, 2/10 Black, 1/10 each for the rest
RACE_DISTRIBUTION = [
    "White", "White", "White",
    "Latino", "Latino",
    "Black", "Black",
    "Asian",
    "Indian-American",
    "Biracial",
]

# Keyword found in the first interest -> associated second interest
INTEREST_ASSOCIATIONS: List[Tuple[Tuple[str, ...], str]] = [
    (("fitness", "health"), "Nutrition"),
    (("tech", "gadget"), "Innovation"),
    (("fashion", "style"), "Design"),
    (("food", "cooking"), "Restaurants"),
    (("travel", "adventure"), "Photography"),
]

TITLE_ADJECTIVES = [
    "Savvy", "Curious", "Dedicated", "Passionate", "Modern",
    "Ambitious", "Mindful", "Adventurous", "Practical", "Creative",
]
TITLE_NOUNS = [
    "Enthusiast", "Explorer", "Professional", "Seeker", "Devotee",
    "Aficionado", "Trendsetter", "Connoisseur", "Achiever", "Insider",
]

DEFAULT_AGE_MIN = 25
DEFAULT_AGE_MAX = 45

_AGE_RANGE_PATTERN = re.compile(r"(\d{1,3})\s*(?:-|–|to)\s*(\d{1,3})")
_INTEGER_PATTERN = re.compile(r"^\d{1,3}$")


def _rng(rng: Optional[random.Random]) -> random.Random:
    return rng if rng is not None else random.Random()


def normalize_gender(raw: Any, rng: Optional[random.Random] = None) -> Gender:
    """Map free-text gender to Men or Women.

    "women" is checked first because it contains "men". "Both", blanks and
    anything unrecognized resolve to a uniform random choice.
    """
    text = str(raw).lower() if raw is not None else ""
    if "women" in text:
        return Gender.WOMEN
    if "men" in text:
        return Gender.MEN
    return _rng(rng).choice([Gender.MEN, Gender.WOMEN])


def _clean_interests(raw: Any) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        items: Iterable[Any] = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        items = raw
    else:
        return []
    return [str(item).strip() for item in items if item is not None and str(item).strip()]


def _associated_interest(first: str, offering_context: str) -> str:
    lowered = first.lower()
    for keywords, topic in INTEREST_ASSOCIATIONS:
        if any(keyword in lowered for keyword in keywords):
            return topic
    return f"{offering_context} discovery"


def ensure_two_interests(raw: Any, offering_context: Optional[str] = None) -> List[str]:
    """Return exactly two non-empty interests."""
    context = (offering_context or "").strip() or DEFAULT_OFFERING
    interests = _clean_interests(raw)

    if len(interests) >= 2:
        return interests[:2]
    if len(interests) == 1:
        second = _associated_interest(interests[0], context)
        if second.lower() == interests[0].lower():
            second = f"{context} discovery"
        return [interests[0], second]
    return [f"{context} trends", f"{context} discovery"]


def assign_race(rng: Optional[random.Random] = None) -> str:
    """Weighted random pick from RACE_DISTRIBUTION."""
    return _rng(rng).choice(RACE_DISTRIBUTION)


def ensure_race(persona: Persona, rng: Optional[random.Random] = None) -> Persona:
    """Return the persona with a race, assigning one only when absent."""
    if persona.race:
        return persona
    return persona.model_copy(update={"race": assign_race(rng)})


def enhance_title(title: Optional[str], interests: List[str], rng: Optional[random.Random] = None) -> str:
    """Keep a title that mentions the primary interest, otherwise synthesize one."""
    current = (title or "").strip()
    if not interests:
        return current
    primary = interests[0].strip()
    first_word = primary.split()[0] if primary else ""
    if current and first_word and first_word.lower() in current.lower():
        return current

    generator = _rng(rng)
    adjective = generator.choice(TITLE_ADJECTIVES)
    noun = generator.choice(TITLE_NOUNS)
    return f"{first_word[:1].upper()}{first_word[1:]} {adjective} {noun}"


def _parse_age(value: Any, field_name: str) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise MalformedResponse(f"{field_name} must be a number, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INTEGER_PATTERN.match(value.strip()):
        return int(value.strip())
    raise MalformedResponse(f"{field_name} must be a whole number, got {value!r}")


def parse_age_band(raw: PersonaRaw) -> Tuple[int, int]:
    """Read ageMin/ageMax (or an ``age`` range string) without reordering them."""
    age_min = _parse_age(raw.age_min, "ageMin")
    age_max = _parse_age(raw.age_max, "ageMax")

    if age_min is None and age_max is None and isinstance(raw.age, str):
        match = _AGE_RANGE_PATTERN.search(raw.age)
        if match:
            age_min, age_max = int(match.group(1)), int(match.group(2))

    if age_min is None and age_max is None:
        return DEFAULT_AGE_MIN, DEFAULT_AGE_MAX
    if age_min is None:
        age_min = age_max
    if age_max is None:
        age_max = age_min

    if age_min < 0 or age_max < 0:
        raise MalformedResponse(f"Negative age band {age_min}-{age_max}")
    if age_min > age_max:
        raise MalformedResponse(f"ageMin {age_min} is greater than ageMax {age_max}")
    return age_min, age_max


def _resolve_id(raw_id: Any, index: int, taken_ids: Set[str]) -> str:
    if isinstance(raw_id, (str, int)) and not isinstance(raw_id, bool):
        candidate = str(raw_id).strip()
        if candidate and candidate not in taken_ids:
            return candidate

    base = f"persona-{index}"
    candidate = base
    suffix = 2
    while candidate in taken_ids:
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_persona(
    raw: Union[Dict[str, Any], PersonaRaw, Persona],
    index: int,
    offering_context: Optional[str] = None,
    rng: Optional[random.Random] = None,
    taken_ids: Optional[Set[str]] = None,
) -> Persona:
    """Turn one upstream record into a valid Persona.

    Args:
        raw: Record from the text collaborator (or an existing Persona)
        index: Slot index, used for the ``persona-<index>`` id fallback
        offering_context: Offering text used for derived interests
        rng: Random source for gender, race and title fallbacks
        taken_ids: Identifiers already in use; the result never collides

    Raises:
        MalformedResponse: if the record is not an object or its age band is invalid
    """
    generator = _rng(rng)
    taken = taken_ids if taken_ids is not None else set()

    if isinstance(raw, Persona):
        raw = raw.model_dump(by_alias=True, mode="json")
    if isinstance(raw, dict):
        try:
            record = PersonaRaw.model_validate(raw)
        except ValidationError as e:
            raise MalformedResponse(f"Invalid persona record at index {index}: {e}") from e
    elif isinstance(raw, PersonaRaw):
        record = raw
    else:
        raise MalformedResponse(
            f"Persona record at index {index} is {type(raw).__name__}, expected an object"
        )

    interests = ensure_two_interests(record.interests, offering_context)
    age_min, age_max = parse_age_band(record)
    title = _optional_text(record.title) or _optional_text(record.name)
    race = _optional_text(record.race) or assign_race(generator)

    try:
        persona = Persona(
            id=_resolve_id(record.id, index, taken),
            title=enhance_title(title, interests, generator),
            gender=normalize_gender(record.gender, generator),
            age_min=age_min,
            age_max=age_max,
            interests=interests,
            race=race,
            portrait_url=_optional_text(record.portrait_url),
            tagline=_optional_text(record.tagline),
            description=_optional_text(record.description),
        )
    except ValidationError as e:
        raise MalformedResponse(f"Invalid persona record at index {index}: {e}") from e

    taken.add(persona.id)
    return persona


def normalize_personas(
    raws: List[Any],
    offering_context: Optional[str] = None,
    rng: Optional[random.Random] = None,
    taken_ids: Optional[Set[str]] = None,
    start_index: int = 0,
) -> List[Persona]:
    """Normalize a list of upstream records, keeping identifiers unique."""
    taken = taken_ids if taken_ids is not None else set()
    personas = [
        normalize_persona(raw, start_index + offset, offering_context, rng, taken)
        for offset, raw in enumerate(raws)
    ]
    logger.debug(f"Normalized {len(personas)} persona records")
    return personas
