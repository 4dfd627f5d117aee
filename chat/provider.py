"""
Generation provider used by the relay endpoint.

The relay only needs one capability: hand over role-tagged messages plus
model/temperature, get back an iterator of text fragments. Any backend that
can do that (OpenAI, LM Studio, another OpenAI-compatible server) fits.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterator, List

from openai import OpenAI

from .config import RelayConfig


class ChatProvider(ABC):
    """Streaming chat-completion capability."""

    @abstractmethod
    def stream_completion(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float,
    ) -> Iterator[str]:
        """
        Open a streamed completion and return its text fragments.

        Opening the stream happens before this returns, so a rejected request
        or an unreachable provider raises here rather than during iteration.
        Fragments may be empty when a chunk carries no text.
        """


class OpenAIChatProvider(ChatProvider):
    def __init__(self, api_key: str, base_url=None):
        self._client = OpenAI(api_key=api_key, base_url=base_url)

    def stream_completion(self, messages, model, temperature):
        completion = self._client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            stream=True,
        )
        return _iter_fragments(completion)


def _iter_fragments(completion) -> Iterator[str]:
    with completion:
        for chunk in completion:
            if not chunk.choices:
                continue
            yield chunk.choices[0].delta.content or ""


def get_provider(config: RelayConfig) -> ChatProvider:
    return OpenAIChatProvider(api_key=config.api_key, base_url=config.base_url)
