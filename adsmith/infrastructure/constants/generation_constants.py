"""
Constants for persona and portrait generation.

This module defines the defaults used by settings.py and by the services
that generate personas and portraits. Services should reference these
constants instead of repeating literal values.
"""

# Persona window
MIN_PERSONA_COUNT = 1
MAX_PERSONA_COUNT = 5
DEFAULT_PERSONA_COUNT = 1

# Offering text used when the form has no offering yet
DEFAULT_OFFERING = "ramen noodles"

# Portrait retry policy
PORTRAIT_MAX_RETRIES = 3
PORTRAIT_RETRY_DELAY_SECONDS = 2.0
PORTRAIT_TIMEOUT_SECONDS = 15.0

# Bounded fan-out for batch portrait generation
PORTRAIT_MAX_CONCURRENCY = 3
PORTRAIT_MAX_CONCURRENCY_LIMIT = 5

# Image resolutions accepted by the portrait backend
DEFAULT_PORTRAIT_RESOLUTION = "RESOLUTION_1024_1024"
PLATFORM_RESOLUTIONS = {
    "Google": [
        ("1:1", "RESOLUTION_1024_1024"),
        ("4:5", "RESOLUTION_896_1120"),
        ("21:11", "RESOLUTION_1344_704"),
    ],
    "Meta": [
        ("1:1", "RESOLUTION_1024_1024"),
        ("4:5", "RESOLUTION_896_1120"),
        ("9:16", "RESOLUTION_720_1280"),
    ],
}

# Text generation
OPENAI_PERSONA_MODEL = "gpt-4o-mini"
OPENAI_PERSONA_TEMPERATURE = 0.7
TEXT_REQUEST_TIMEOUT_SECONDS = 60.0

# Persistent mirror
DEFAULT_MIRROR_DATABASE_URL = "sqlite:///./persona_mirror.db"
DEFAULT_MIRROR_NAMESPACE = "adsmith_personas_data"
MIRROR_RECORD_VERSION = 1

# Environment variable names
ENV_OPENAI_API_KEY = "OPENAI_API_KEY"
ENV_OPENAI_PERSONA_MODEL = "OPENAI_PERSONA_MODEL"
ENV_PORTRAIT_ENDPOINT_URL = "PORTRAIT_ENDPOINT_URL"
ENV_PORTRAIT_API_KEY = "PORTRAIT_API_KEY"
ENV_STYLES_ENDPOINT_URL = "STYLES_ENDPOINT_URL"
ENV_STYLES_API_KEY = "STYLES_API_KEY"
ENV_MIRROR_DATABASE_URL = "PERSONA_MIRROR_DATABASE_URL"
ENV_MIRROR_NAMESPACE = "PERSONA_MIRROR_NAMESPACE"
ENV_PORTRAIT_MAX_RETRIES = "PORTRAIT_MAX_RETRIES"
ENV_PORTRAIT_RETRY_DELAY = "PORTRAIT_RETRY_DELAY_SECONDS"
ENV_PORTRAIT_TIMEOUT = "PORTRAIT_TIMEOUT_SECONDS"
ENV_PORTRAIT_MAX_CONCURRENCY = "PORTRAIT_MAX_CONCURRENCY"
ENV_PORTRAIT_RESOLUTION = "PORTRAIT_RESOLUTION"
ENV_DEFAULT_PERSONA_COUNT = "DEFAULT_PERSONA_COUNT"
ENV_LOG_LEVEL = "LOG_LEVEL"
