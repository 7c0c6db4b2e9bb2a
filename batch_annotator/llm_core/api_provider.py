import os
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Any
from dotenv import load_dotenv
from langchain_openai import ChatOpenAI
from langchain_anthropic import ChatAnthropic
from langchain_google_genai import ChatGoogleGenerativeAI
from ..exceptions import MissingAPIKeyError, InvalidProviderError, ModelInitializationError

load_dotenv()

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "anthropic", "gemini", "lm-studio", "vllm")


class ModelConfig:
    """Manages model configuration from JSON file."""

    def __init__(self, config_path: Optional[Path] = None):
        config_path = config_path or Path(__file__).parent / "model_config.json"
        with open(config_path, 'r') as f:
            self.config = json.load(f)

    def get_models(self, provider: str) -> List[Dict]:
        """Get list of models for a provider."""
        return self.config["models"].get(provider, [])

    def get_model_info(self, provider: str, model_id: str) -> Optional[Dict]:
        """Get information about a specific model."""
        for model in self.get_models(provider):
            if model["id"] == model_id:
                return model
        return None

    def get_model_parameters(self, provider: str, model_id: str) -> Dict[str, Any]:
        """Get default parameters for a specific model."""
        model_info = self.get_model_info(provider, model_id)
        if model_info:
            defaults = {}
            for param_name, param_def in model_info.get("parameters", {}).items():
                if "default" in param_def:
                    defaults[param_name] = param_def["default"]
            return defaults

        # Unlisted and local models use provider defaults
        provider_config = self.get_provider_config(provider)
        return dict(provider_config.get("default_parameters", {"temperature": 0.1}))

    def get_unsupported_parameters(self, provider: str, model_id: str) -> List[str]:
        """Get list of unsupported parameters for a model."""
        model_info = self.get_model_info(provider, model_id)
        if model_info:
            return model_info.get("unsupported_parameters", [])
        return []

    def is_reasoning_model(self, provider: str, model_id: str) -> bool:
        """Check if a model is a reasoning model."""
        model_info = self.get_model_info(provider, model_id)
        return model_info.get("is_reasoning", False) if model_info else False

    def get_provider_config(self, provider: str) -> Dict:
        """Get provider configuration."""
        return self.config["provider_config"].get(provider, {})


class LLM:
    """A factory class for creating LangChain chat clients for various providers.

    The credential is supplied by the caller for each submission. When it is
    omitted the provider's environment variable is used instead.
    """

    _model_config = None

    @classmethod
    def get_model_config(cls) -> ModelConfig:
        """Get or create the model configuration singleton."""
        if cls._model_config is None:
            cls._model_config = ModelConfig()
        return cls._model_config

    def __init__(self, provider: str, model: str, credential: Optional[str] = None,
                 timeout: float = 30.0, max_retries: int = 2, **kwargs):
        """
        Initializes the LLM factory.

        Args:
            provider: The name of the LLM provider (e.g., 'openai', 'lm-studio').
            model: The specific model name to use.
            credential: API key for the provider. Falls back to the environment.
            timeout: Per-request timeout in seconds, passed to the client.
            max_retries: Client retries with backoff on rate limits and transient errors.
            **kwargs: Additional parameters to override defaults (max_tokens, temperature, ...).
        """
        if provider not in SUPPORTED_PROVIDERS:
            raise InvalidProviderError(
                f"Unsupported provider: {provider}. Supported: {', '.join(SUPPORTED_PROVIDERS)}")
        self.provider = provider
        self.model = model
        self.credential = credential
        self.timeout = timeout
        self.max_retries = max_retries
        self.model_config = self.get_model_config()

        self.parameters = self.model_config.get_model_parameters(provider, model)
        self.parameters.update({k: v for k, v in kwargs.items() if v is not None})

        for param in self.model_config.get_unsupported_parameters(provider, model):
            self.parameters.pop(param, None)

    def _resolve_api_key(self) -> str:
        env_var = self.model_config.get_provider_config(self.provider).get("env_var")
        api_key = self.credential or (os.getenv(env_var) if env_var else None)
        if not api_key:
            raise MissingAPIKeyError(
                f"No API key supplied for {self.provider} and {env_var} environment variable is not set")
        return api_key

    def _common_params(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "timeout": self.timeout,
            "max_retries": self.max_retries,
        }

    def _prepare_openai_params(self) -> Dict[str, Any]:
        """Prepare parameters for OpenAI models."""
        params = self._common_params()
        params["api_key"] = self._resolve_api_key()
        params["stream_usage"] = True

        if self.model_config.is_reasoning_model(self.provider, self.model):
            if "reasoning_effort" in self.parameters:
                params["reasoning_effort"] = self.parameters["reasoning_effort"]
        else:
            for name in ("temperature", "top_p", "presence_penalty", "frequency_penalty"):
                if name in self.parameters:
                    params[name] = self.parameters[name]
        if "max_tokens" in self.parameters:
            params["max_tokens"] = self.parameters["max_tokens"]
        return params

    def _prepare_anthropic_params(self) -> Dict[str, Any]:
        """Prepare parameters for Anthropic models."""
        params = self._common_params()
        params["api_key"] = self._resolve_api_key()
        for name in ("temperature", "top_p", "max_tokens"):
            if name in self.parameters:
                params[name] = self.parameters[name]
        return params

    def _prepare_gemini_params(self) -> Dict[str, Any]:
        """Prepare parameters for Gemini models."""
        params = self._common_params()
        params["google_api_key"] = self._resolve_api_key()
        for name in ("temperature", "top_p"):
            if name in self.parameters:
                params[name] = self.parameters[name]
        max_tokens = self.parameters.get("max_tokens", self.parameters.get("max_output_tokens"))
        if max_tokens is not None:
            params["max_output_tokens"] = max_tokens
        return params

    def _prepare_local_params(self) -> Dict[str, Any]:
        """Prepare parameters for local OpenAI-compatible servers (LM-Studio, vLLM)."""
        host_ip = os.getenv("HOST_IP")
        if not host_ip:
            raise MissingAPIKeyError(f"HOST_IP environment variable is not set for {self.provider}")
        provider_config = self.model_config.get_provider_config(self.provider)
        params = self._common_params()
        params["base_url"] = f"http://{host_ip}:{provider_config['port']}/v1"
        params["api_key"] = self.credential or provider_config["api_key"]
        for name in ("temperature", "max_tokens"):
            if name in self.parameters:
                params[name] = self.parameters[name]
        return params

    def get_llm(self):
        """
        Initializes and returns a LangChain chat client for the configured provider.

        Raises:
            MissingAPIKeyError: If no credential is available.
            ModelInitializationError: If the client rejects its parameters.
        """
        if self.provider == "openai":
            client_class, params = ChatOpenAI, self._prepare_openai_params()
        elif self.provider == "anthropic":
            client_class, params = ChatAnthropic, self._prepare_anthropic_params()
        elif self.provider == "gemini":
            client_class, params = ChatGoogleGenerativeAI, self._prepare_gemini_params()
        else:
            client_class, params = ChatOpenAI, self._prepare_local_params()
            logger.info(f"Using local {self.provider} endpoint at {params['base_url']}")

        try:
            return client_class(**params)
        except (ValueError, TypeError) as e:
            logger.error(f"Failed to initialize {self.provider} model {self.model}: {e}")
            raise ModelInitializationError(f"Could not initialize {self.provider} model {self.model}: {e}") from e
