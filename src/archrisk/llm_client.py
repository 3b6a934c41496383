"""
LLM client for routing requests to different language models

Supports OpenAI-compatible cloud endpoints (Gemini by default), local
inference servers and a mock client behind a unified interface.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import yaml
from openai import AsyncOpenAI
from pydantic import BaseModel, Field

from .config import ArchriskConfig, LLMRouterConfig
from .models import ArchriskError
from .observability.metrics import get_metrics
from .observability.tracer import add_event, set_attribute, trace_async

logger = logging.getLogger(__name__)


class LLMConfigurationError(ArchriskError):
    """Raised when a router cannot be used as configured"""


class LLMResponse(BaseModel):
    """Standardized LLM response format"""

    content: str
    model: str
    tokens_used: Optional[int] = None
    finish_reason: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients"""

    def __init__(self, config: LLMRouterConfig):
        self.config = config

    @property
    def provider_name(self) -> str:
        return self.config.provider

    @abstractmethod
    async def generate(
        self, prompt: str, system_prompt: Optional[str] = None, **kwargs
    ) -> LLMResponse:
        """Generate response from LLM"""

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if LLM is available"""


class BaseOpenAICompatibleClient(BaseLLMClient):
    """Shared chat-completions logic for OpenAI-compatible endpoints"""

    def __init__(self, config: LLMRouterConfig):
        super().__init__(config)
        self._client: Optional[AsyncOpenAI] = None

    @abstractmethod
    def _get_client(self) -> AsyncOpenAI:
        """Get the OpenAI client instance (must be implemented by subclasses)"""

    @abstractmethod
    def _get_trace_name(self) -> str:
        """Get the trace operation name"""

    def _get_additional_metadata(self) -> dict[str, Any]:
        """Get additional metadata for LLMResponse (can be overridden)"""
        return {}

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        template_type: str = "default",
        **kwargs,
    ) -> LLMResponse:
        """Generate response using OpenAI-compatible API"""

        @trace_async(self._get_trace_name(), attributes={"template_type": template_type})
        async def _generate():
            metrics = get_metrics()
            try:
                client = self._get_client()

                set_attribute("llm.provider", self.provider_name)
                set_attribute("llm.model", self.config.model)
                set_attribute("prompt.length", len(prompt))

                messages = []
                if system_prompt:
                    messages.append({"role": "system", "content": system_prompt})
                messages.append({"role": "user", "content": prompt})

                generation_params = {
                    "model": self.config.model,
                    "messages": messages,
                    "temperature": self.config.temperature,
                    "max_tokens": self.config.max_tokens,
                    **kwargs,
                }

                if metrics:
                    metrics.record_llm_request(self.provider_name, self.config.model)

                response = await client.chat.completions.create(**generation_params)

                choice = response.choices[0]
                usage = response.usage
                metadata = {
                    "prompt_tokens": usage.prompt_tokens if usage else None,
                    "completion_tokens": usage.completion_tokens if usage else None,
                }
                metadata.update(self._get_additional_metadata())

                result = LLMResponse(
                    content=choice.message.content or "",
                    model=response.model,
                    tokens_used=usage.total_tokens if usage else None,
                    finish_reason=choice.finish_reason,
                    metadata=metadata,
                )

                if metrics and usage:
                    metrics.record_llm_tokens(
                        self.provider_name,
                        self.config.model,
                        usage.prompt_tokens or 0,
                        usage.completion_tokens or 0,
                    )

                set_attribute("response.tokens_used", result.tokens_used)
                set_attribute("response.finish_reason", result.finish_reason)
                add_event("llm_generation_complete")

                return result

            except Exception as e:
                logger.error(f"{self.provider_name} generation failed: {e}")
                if metrics:
                    metrics.record_llm_error(
                        self.provider_name, self.config.model, type(e).__name__
                    )
                set_attribute("error.type", type(e).__name__)
                add_event("llm_generation_error", {"error": str(e)})
                raise

        return await _generate()

    async def health_check(self) -> bool:
        """Check LLM service availability"""
        try:
            client = self._get_client()
            await client.chat.completions.create(
                model=self.config.model,
                messages=[{"role": "user", "content": "test"}],
                max_tokens=1,
            )
            return True
        except Exception as e:
            logger.error(f"{self.provider_name} health check failed: {e}")
            return False


class OpenAIClient(BaseOpenAICompatibleClient):
    """Cloud client for OpenAI or any hosted OpenAI-compatible API (e.g. Gemini)"""

    def _get_client(self) -> AsyncOpenAI:
        """Lazy initialization of the API client"""
        if self._client is None:
            api_key = self.config.resolve_api_key()
            if not api_key:
                raise LLMConfigurationError(
                    f"No API key configured for model {self.config.model}; "
                    f"set {self.config.api_key_env or 'api_key'}"
                )
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout,
            )
        return self._client

    def _get_trace_name(self) -> str:
        return "llm.openai.generate"


class LocalLLMClient(BaseOpenAICompatibleClient):
    """
    Local LLM client for OpenAI-compatible inference services

    Supports popular local inference services like:
    - Ollama (http://localhost:11434/v1)
    - LMStudio (http://localhost:1234/v1)
    - vLLM (http://your-server:8000/v1)
    """

    def _get_client(self) -> AsyncOpenAI:
        """Lazy initialization of local OpenAI-compatible client"""
        if self._client is None:
            if not self.config.base_url:
                raise LLMConfigurationError(
                    "base_url is required for local LLM provider. "
                    "Examples: http://localhost:11434/v1 (Ollama), "
                    "http://localhost:1234/v1 (LMStudio)"
                )
            self._client = AsyncOpenAI(
                api_key=self.config.resolve_api_key() or "not-needed",
                base_url=self.config.base_url,
                timeout=self.config.timeout,
            )
        return self._client

    def _get_trace_name(self) -> str:
        return "llm.local.generate"

    def _get_additional_metadata(self) -> dict[str, Any]:
        return {"base_url": self.config.base_url}


class MockLLMClient(BaseLLMClient):
    """Mock LLM client for testing and development"""

    def __init__(self, config: LLMRouterConfig):
        super().__init__(config)
        self._load_mock_responses()

    @property
    def provider_name(self) -> str:
        return "mock"

    def _load_mock_responses(self):
        """Load mock responses from YAML file"""
        if self.config.mock_responses_path:
            mock_responses_path = Path(self.config.mock_responses_path)
        else:
            mock_responses_path = (
                Path(__file__).parent / "prompts" / "mock_responses.yaml"
            )

        try:
            with open(mock_responses_path, encoding="utf-8") as f:
                self.mock_responses = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load mock responses: {e}")
            self.mock_responses = {}

        self.mock_responses.setdefault(
            "default", {"content": "Mock LLM response for testing purposes"}
        )

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        template_type: str = "default",
        **kwargs,
    ) -> LLMResponse:
        """Generate mock response"""
        await asyncio.sleep(0.01)  # Simulate network delay

        response_data = self.mock_responses.get(
            template_type, self.mock_responses["default"]
        )

        if template_type == "risk_analysis":
            # Fenced like real model output
            content = "```json\n" + json.dumps(response_data, indent=2) + "\n```"
        else:
            content = response_data.get("content", f"Mock response for {template_type}")

        return LLMResponse(
            content=content,
            model=f"mock-{self.config.model}",
            tokens_used=len(content.split()),
            finish_reason="stop",
            metadata={"mock": True, "template_type": template_type},
        )

    async def health_check(self) -> bool:
        """Mock health check always returns True"""
        return True


class LLMRouter:
    """
    Routes LLM requests to appropriate clients

    Handles client instantiation and health checks. A failed generation is
    raised to the caller, which owns the fallback decision.
    """

    def __init__(self, config: ArchriskConfig):
        self.config = config
        self._clients: dict[str, BaseLLMClient] = {}

    def _create_client(
        self, router_name: str, router_config: LLMRouterConfig
    ) -> BaseLLMClient:
        """Create LLM client based on provider"""
        provider = router_config.provider.lower()

        if provider == "openai":
            if router_config.api_key and router_config.api_key.startswith(
                "sk-placeholder"
            ):
                logger.info(
                    f"Using mock client for placeholder API key in router {router_name}"
                )
                return MockLLMClient(router_config)
            return OpenAIClient(router_config)
        if provider == "local":
            return LocalLLMClient(router_config)
        if provider == "mock":
            return MockLLMClient(router_config)
        logger.warning(f"Unknown LLM provider '{provider}', using mock client")
        return MockLLMClient(router_config)

    def get_client(self, router_name: Optional[str] = None) -> BaseLLMClient:
        """Get LLM client by router name"""
        router_name = router_name or self.config.llm.default

        if router_name not in self._clients:
            router_config = self.config.get_llm_router_config(router_name)
            self._clients[router_name] = self._create_client(router_name, router_config)

        return self._clients[router_name]

    def is_configured(self, router_name: Optional[str] = None) -> bool:
        """Whether the router can make real calls (mock and local need no key)"""
        router_config = self.config.get_llm_router_config(router_name)
        if router_config.provider.lower() != "openai":
            return True
        return router_config.resolve_api_key() is not None

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        router_name: Optional[str] = None,
        **kwargs,
    ) -> LLMResponse:
        """Generate response using specified router"""
        client = self.get_client(router_name)

        try:
            return await client.generate(prompt, system_prompt, **kwargs)
        except Exception as e:
            logger.error(
                f"LLM generation failed with router {router_name or self.config.llm.default}: {e}"
            )
            raise

    async def health_check(self, router_name: Optional[str] = None) -> bool:
        """Check health of specified router"""
        try:
            client = self.get_client(router_name)
            is_healthy = await client.health_check()
            return is_healthy
        except Exception as e:
            logger.error(f"Health check failed for router {router_name}: {e}")
            return False

    async def health_check_all(self) -> dict[str, bool]:
        """Check health of all configured routers"""
        results = {}
        for router_name in self.config.llm.routers:
            results[router_name] = await self.health_check(router_name)
        return results
