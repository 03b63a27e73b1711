"""Result presentation: display text and spoken phrases.

Synthesis itself is left to whatever ``utter`` callback is plugged in; by
default utterances are only logged.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Sequence

from imageclassifier.classifier.recognition import Recognition
from imageclassifier.common.logging import get_logger

NO_RESULTS_TEXT = "I don't understand what I see"

# Below this the best guess is announced as uncertain
CONFIDENT_THRESHOLD = 0.4

Utter = Callable[[str], Awaitable[None]]


def format_results(results: Sequence[Recognition]) -> str:
    """Join result titles for display, e.g. ``"cat, dog or fox"``."""
    if not results:
        return NO_RESULTS_TEXT

    titles = [r.title for r in results]
    if len(titles) == 1:
        return titles[0]
    return f"{', '.join(titles[:-1])} or {titles[-1]}"


def build_results_utterance(results: Sequence[Recognition]) -> str:
    """Build the sentence announcing classification results."""
    if not results:
        return f"{NO_RESULTS_TEXT}."

    best = results[0]
    if best.confidence >= CONFIDENT_THRESHOLD or len(results) == 1:
        return f"I see a {best.title}."
    return f"I'm not sure. It could be a {format_results(results)}."


class ResultSpeaker:
    """Turns classifier events into utterances."""

    READY_TEXT = "I'm ready!"
    SHUTTER_TEXT = "Click!"

    def __init__(self, utter: Utter | None = None) -> None:
        """Initialize the speaker.

        Args:
            utter: Coroutine speaking a sentence; completes when speech ends.
        """
        self.logger = get_logger("speaker")
        self._utter = utter or self._log_utterance

    async def _log_utterance(self, text: str) -> None:
        self.logger.info("utterance", text=text)

    async def say(self, text: str) -> None:
        """Speak a sentence and wait until it is done."""
        await self._utter(text)

    async def speak_ready(self) -> None:
        await self.say(self.READY_TEXT)

    async def speak_shutter_sound(self) -> None:
        await self.say(self.SHUTTER_TEXT)

    async def speak_results(self, results: Sequence[Recognition]) -> None:
        await self.say(build_results_utterance(results))
