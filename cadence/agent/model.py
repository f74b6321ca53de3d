"""Chat model construction."""

import logging
from typing import Any

from langchain_core.language_models import BaseChatModel

from cadence.core.config import AgentConfig

logger = logging.getLogger(__name__)

_CONFIG_FIELDS = {"model", "api_key", "temperature", "region", "max_rounds", "history_window"}


def create_chat_model(config: AgentConfig) -> BaseChatModel:
    """Create the chat model named by ``config.model``.

    Provider-specific classes are imported lazily so only the configured
    provider's package has to be installed. Extra keys in the agent config
    section (base_url, max_tokens, ...) are passed to the constructor.

    Supported providers: openai, anthropic, bedrock_converse.

    Args:
        config: Agent configuration.

    Returns:
        Configured BaseChatModel instance.

    Raises:
        ValueError: If provider is not supported.
    """
    if ":" in config.model:
        provider, model_name = config.model.split(":", 1)
    else:
        provider = "openai"
        model_name = config.model

    kwargs: dict[str, Any] = {"model": model_name, "temperature": config.temperature}
    extras = {k: v for k, v in (config.model_extra or {}).items() if k not in _CONFIG_FIELDS}
    kwargs.update(extras)

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        if config.api_key:
            kwargs["api_key"] = config.api_key
        logger.info(f"Creating ChatOpenAI: model={model_name}, kwargs={list(kwargs.keys())}")
        return ChatOpenAI(**kwargs)

    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        if config.api_key:
            kwargs["api_key"] = config.api_key
        logger.info(f"Creating ChatAnthropic: model={model_name}")
        return ChatAnthropic(**kwargs)

    if provider in ("bedrock_converse", "bedrock"):
        from langchain_aws import ChatBedrockConverse

        if config.region:
            kwargs["region_name"] = config.region
        # Bedrock uses AWS credentials, not api_key
        logger.info(f"Creating ChatBedrockConverse: model={model_name}")
        return ChatBedrockConverse(**kwargs)

    raise ValueError(
        f"Unsupported model provider: '{provider}'. "
        f"Supported: openai, anthropic, bedrock_converse"
    )
