"""Classification result value type."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Recognition:
    """Immutable result describing what was recognized.

    Attributes:
        id: Identifier of the class (its index in the label catalog).
        title: Display name for the recognition.
        confidence: Score in [0, 1], higher is better.
    """

    id: str
    title: str
    confidence: float = 0.0

    def __str__(self) -> str:
        parts = []
        if self.id:
            parts.append(f"[{self.id}]")
        if self.title:
            parts.append(self.title)
        parts.append(f"({self.confidence * 100.0:.1f}%)")
        return " ".join(parts)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "confidence": round(float(self.confidence), 3),
        }
