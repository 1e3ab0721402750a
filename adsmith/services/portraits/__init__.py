"""Portrait generation with retries and bounded batch fan-out."""
