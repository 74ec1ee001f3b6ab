"""
OpenAI client factory for the decision generator and embedding adapters.

Azure OpenAI is used when its credentials are present, standard OpenAI
otherwise.  Clients are created with the SDK's own retries disabled;
the pipeline applies its own bounded retry policy around every
external call.

Environment variables:
    # Azure OpenAI (preferred when available)
    AZURE_OPENAI_API_KEY                - Azure OpenAI API key
    AZURE_OPENAI_ENDPOINT               - e.g. https://xxx.openai.azure.com/
    AZURE_OPENAI_API_VERSION            - API version (default: 2024-02-15-preview)
    AZURE_OPENAI_DEPLOYMENT             - Chat deployment (default: gpt-4o)
    AZURE_OPENAI_EMBEDDING_DEPLOYMENT   - Embedding deployment (default: text-embedding-3-small)

    # Standard OpenAI (fallback)
    OPENAI_API_KEY                      - OpenAI API key
    OPENAI_MODEL                        - Chat model (default: gpt-4o-mini)
    OPENAI_EMBEDDING_MODEL              - Embedding model (default: text-embedding-3-small)
"""

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-02-15-preview"
DEFAULT_DEPLOYMENT = "gpt-4o"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"


def _get_azure_endpoint() -> Optional[str]:
    """Get and normalize the Azure OpenAI endpoint."""
    endpoint = os.getenv("AZURE_OPENAI_ENDPOINT") or os.getenv("AZURE_OPENAI_BASE_URL")
    if not endpoint:
        return None

    endpoint = endpoint.rstrip("/")
    for suffix in ("/openai/v1", "/openai"):
        if endpoint.endswith(suffix):
            endpoint = endpoint[: -len(suffix)]
            break
    return endpoint


def is_azure_openai_configured() -> bool:
    return bool(os.getenv("AZURE_OPENAI_API_KEY") and _get_azure_endpoint())


def is_openai_configured() -> bool:
    """True when either Azure or standard OpenAI credentials are present."""
    return is_azure_openai_configured() or bool(os.getenv("OPENAI_API_KEY"))


def get_openai_client(timeout: float = 30.0, api_key: Optional[str] = None):
    """
    Create an OpenAI client, using Azure OpenAI if configured.

    Args:
        timeout: Per-request timeout in seconds.
        api_key: Optional API key override for standard OpenAI.

    Returns:
        OpenAI or AzureOpenAI client instance.

    Raises:
        ValueError: If no valid credentials are found.
    """
    azure_api_key = os.getenv("AZURE_OPENAI_API_KEY")
    azure_endpoint = _get_azure_endpoint()

    if azure_api_key and azure_endpoint:
        from openai import AzureOpenAI

        logger.debug(f"Creating AzureOpenAI client with endpoint: {azure_endpoint[:30]}...")
        return AzureOpenAI(
            api_key=azure_api_key,
            api_version=os.getenv("AZURE_OPENAI_API_VERSION", DEFAULT_API_VERSION),
            azure_endpoint=azure_endpoint,
            timeout=timeout,
            max_retries=0,
        )

    standard_api_key = api_key or os.getenv("OPENAI_API_KEY")
    if standard_api_key:
        from openai import OpenAI

        logger.debug("Creating standard OpenAI client")
        return OpenAI(api_key=standard_api_key, timeout=timeout, max_retries=0)

    raise ValueError(
        "No OpenAI credentials found. Set either:\n"
        "  - AZURE_OPENAI_API_KEY + AZURE_OPENAI_ENDPOINT (for Azure OpenAI)\n"
        "  - OPENAI_API_KEY (for standard OpenAI)"
    )


def get_chat_model() -> str:
    """Chat model (standard OpenAI) or deployment name (Azure)."""
    if is_azure_openai_configured():
        return os.getenv("AZURE_OPENAI_DEPLOYMENT", DEFAULT_DEPLOYMENT)
    return os.getenv("OPENAI_MODEL", DEFAULT_MODEL)


def get_embedding_model() -> str:
    """Embedding model (standard OpenAI) or deployment name (Azure)."""
    if is_azure_openai_configured():
        return os.getenv("AZURE_OPENAI_EMBEDDING_DEPLOYMENT", DEFAULT_EMBEDDING_MODEL)
    return os.getenv("OPENAI_EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL)
