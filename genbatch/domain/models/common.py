"""Defines common Value Objects used across different domain contexts.

These objects represent simple values like record identifiers, prompts and
artifact URLs, ensuring consistency and type safety.
"""

from typing import NewType, TypedDict

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
JobId = NewType("JobId", str)                  # Record id in the job store
PromptText = NewType("PromptText", str)        # Text prompt sent to a provider
ArtifactUrl = NewType("ArtifactUrl", str)      # Remote URL of a generated image/video
DataUri = NewType("DataUri", str)              # data:<mime>;base64,<payload>

# --- Structured Data ---
class Attachment(TypedDict):
    """Attachment structure as stored in the record store."""
    url: str
