"""Concrete implementations for response generators."""

import asyncio
import os
import random
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .models import ASSISTANT_ROLE, USER_ROLE, ChatMessage

CANNED_RESPONSES = (
    "Thank you for your inquiry. Our AI team can help optimize your business "
    "processes through custom solutions.",
    "We specialize in creating tailored AI solutions for businesses like yours. "
    "Would you like to know more about our specific services?",
    "NicorAI has extensive experience in implementing ML/AI technologies. "
    "Our experts would be happy to schedule a consultation.",
    "Our machine learning models can analyze your data to identify patterns and "
    "provide insights that drive business growth.",
    "We can integrate our AI solutions with your existing systems to enhance "
    "productivity and reduce operational costs.",
)


def build_messages(
    prompt: str, history: Iterable[ChatMessage] = ()
) -> List[Dict[str, Any]]:
    """Converts history plus the prompt into provider message dictionaries."""
    messages = [{"role": msg.role, "content": msg.content} for msg in history]
    messages.append({"role": USER_ROLE, "content": prompt})
    return messages


class LLM(ABC):
    """Abstract Base Class for all response generators."""

    @abstractmethod
    def generate_response(
        self, messages: List[Dict[str, Any]], model: Optional[str] = None, **kwargs: Any
    ) -> Any:
        """Generates a response from the provider.

        This method should return the provider's native response object
        directly from their SDK. It may block; ``generate`` runs it in a
        worker thread.

        Parameters
        ----------
        messages : List[Dict[str, Any]]
            A list of ``{"role", "content"}`` dictionaries; the last one is
            the prompt.
        model : str, optional
            The specific model to use for the generation.
        **kwargs : Any
            Provider-specific parameters passed directly to the SDK.

        Returns
        -------
        Any
            The provider's native response object.
        """
        pass

    @abstractmethod
    def extract_content(self, response: Any) -> str:
        """Extracts the text content from the provider's native response."""
        pass

    async def generate(
        self, prompt: str, history: Sequence[ChatMessage] = ()
    ) -> str:
        """Produces the reply text for ``prompt``.

        Cancelling the awaiting task abandons the result of the call.
        """
        messages = build_messages(prompt, history)
        response = await asyncio.to_thread(self.generate_response, messages)
        return self.extract_content(response)


class Canned(LLM):
    """Answers every prompt with a random canned reply after a delay."""

    def __init__(
        self,
        responses: Sequence[str] = CANNED_RESPONSES,
        delay: float = 1.5,
        rng: Optional[random.Random] = None,
    ):
        if not responses:
            raise ValueError("Canned needs at least one response")
        self.responses = list(responses)
        self.delay = delay
        self.rng = rng or random.Random()
        self.model = "canned"

    def generate_response(self, messages, model=None, **kwargs):
        return {"content": self.rng.choice(self.responses)}

    def extract_content(self, response: Any) -> str:
        return response["content"]

    async def generate(self, prompt, history=()):
        await asyncio.sleep(self.delay)
        return self.extract_content(self.generate_response(build_messages(prompt, history)))


class Echo(LLM):
    def __init__(self, default_model: str = "echo-v1", delay: float = 0.8):
        self.model = default_model
        self.delay = delay

    def generate_response(self, messages, model=None, **kwargs):
        user_prompt = messages[-1]["content"] if messages else "No message provided"
        return {"content": f"Echo: {user_prompt}"}

    def extract_content(self, response: Any) -> str:
        if isinstance(response, dict) and "content" in response:
            return response["content"]
        return str(response)

    async def generate(self, prompt, history=()):
        await asyncio.sleep(self.delay)
        return self.extract_content(self.generate_response(build_messages(prompt, history)))


class OpenAI(LLM):
    def __init__(self, default_model: str = "gpt-4o", **client_options: Any):
        from openai import OpenAI

        self.client = OpenAI(**client_options)
        self.model = default_model

    def generate_response(self, messages, model=None, **kwargs):
        return self.client.chat.completions.create(
            messages=messages, model=model or self.model, **kwargs
        )

    def extract_content(self, response: Any) -> str:
        return response.choices[0].message.content or ""


class OpenRouter(OpenAI):
    """OpenAI-compatible chat completions served by openrouter.ai."""

    BASE_URL = "https://openrouter.ai/api/v1"

    def __init__(self, default_model: str = "openai/gpt-4o-mini"):
        super().__init__(
            default_model,
            base_url=self.BASE_URL,
            api_key=os.environ.get("OPENROUTER_API_KEY"),
        )


class Anthropic(LLM):
    MAX_TOKENS = 4096

    def __init__(self, default_model: str = "claude-3-5-sonnet-20241022"):
        from anthropic import Anthropic

        self.client = Anthropic(api_key=os.environ.get("ANTHROPIC_API_KEY"))
        self.model = default_model

    def generate_response(self, messages, model=None, **kwargs):
        kwargs.setdefault("max_tokens", self.MAX_TOKENS)
        return self.client.messages.create(
            model=model or self.model, messages=messages, **kwargs
        )

    def extract_content(self, response: Any) -> str:
        return "".join(
            block.text
            for block in response.content
            if getattr(block, "type", "text") == "text"
        )


class Gemini(LLM):
    """Google Gemini chat. Earlier turns become the chat's history."""

    ROLES = {USER_ROLE: "user", ASSISTANT_ROLE: "model"}

    def __init__(self, default_model: str = "gemini-1.5-flash"):
        from google import genai

        self.client = genai.Client(api_key=os.environ.get("GEMINI_API_KEY"))
        self.model = default_model

    @classmethod
    def to_history(cls, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {"role": cls.ROLES[msg["role"]], "parts": [{"text": msg["content"]}]}
            for msg in messages
        ]

    def generate_response(self, messages, model=None, **kwargs):
        *earlier, prompt = messages
        chat = self.client.chats.create(
            model=model or self.model, history=self.to_history(earlier), **kwargs
        )
        return chat.send_message(prompt["content"])

    def extract_content(self, response: Any) -> str:
        return response.text or ""


class Ollama(LLM):
    """A model served by a local Ollama daemon."""

    def __init__(self, default_model: str = "llama3.1", host: Optional[str] = None):
        from ollama import Client

        self.client = Client(host=host)
        self.model = default_model

    def generate_response(self, messages, model=None, **kwargs):
        return self.client.chat(model=model or self.model, messages=messages, **kwargs)

    def extract_content(self, response: Any) -> str:
        return response["message"]["content"]
