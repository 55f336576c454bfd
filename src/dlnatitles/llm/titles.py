"""Title normalization with triple-call consistency voting.

The provider is asked for the same title up to three times. Two matching
answers win; three different answers mean the output is unstable for this
input and no title is accepted.
"""

from __future__ import annotations

from dlnatitles.core.config import LLMConfig
from dlnatitles.core.errors import GenerationFailed, InconsistentGeneration
from dlnatitles.llm.client import complete
from dlnatitles.llm.prompts import clean_response, title_messages
from dlnatitles.utils.console import console


class TitleGenerator:
    """Produce a normalized media title for a torrent file path.

    Stateless apart from its configuration; safe to share between threads.
    """

    def __init__(self, config: LLMConfig, debug: bool = False) -> None:
        self.config = config
        self.debug = debug

    def generate(self, path: str) -> str:
        """Return the voted title for *path*.

        Raises:
            GenerationFailed: A provider call failed or returned nothing.
            InconsistentGeneration: Three calls returned three different titles.
        """
        if not self.config.model:
            raise GenerationFailed(path, "llm model is not configured")

        messages = title_messages(path)
        if self.debug:
            console.log(f"title prompt: {messages[0]['content']}")

        first = self._request(path, messages, 1)
        second = self._request(path, messages, 2)
        if first == second:
            return first

        third = self._request(path, messages, 3)
        if third == first:
            return first
        if third == second:
            return second

        console.print(
            f"[yellow]Inconsistent titles for {path}:[/yellow] "
            f"{first!r}, {second!r}, {third!r}"
        )
        raise InconsistentGeneration(path, [first, second, third])

    def _request(self, path: str, messages: list[dict[str, str]], attempt: int) -> str:
        try:
            response = complete(messages, self.config)
        except Exception as e:
            if self.debug:
                console.log(f"title attempt {attempt} failed for {path}: {e}")
            raise GenerationFailed(path, f"attempt {attempt}: request failed: {e}") from e

        title = clean_response(response)
        if self.debug:
            console.log(f"title attempt {attempt} for {path}: {title!r}")
        if not title:
            raise GenerationFailed(path, f"attempt {attempt}: provider returned empty title")
        return title
