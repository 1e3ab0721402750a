"""Pure persona normalization and prompt building."""
