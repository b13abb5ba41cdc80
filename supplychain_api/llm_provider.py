"""LLM provider management with automatic fallback support.

Supports:
- Google Gemini (primary)
- AWS Bedrock (fallback when Gemini rate limited)
"""

import logging
from typing import Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage

from supplychain_api.config import settings

logger = logging.getLogger(__name__)

# Track rate limit state
_gemini_rate_limited = False


def reset_rate_limit():
    """Reset the rate limit flag (call after waiting)."""
    global _gemini_rate_limited
    _gemini_rate_limited = False


def mark_gemini_rate_limited():
    """Mark Gemini as rate limited to trigger fallback."""
    global _gemini_rate_limited
    _gemini_rate_limited = True


def has_llm_credentials() -> bool:
    return settings.has_gemini_credentials() or settings.has_bedrock_credentials()


def get_gemini_llm(temperature: float = 0.3) -> Optional[BaseChatModel]:
    """Get Google Gemini LLM if available."""
    if not settings.has_gemini_credentials():
        return None

    from langchain_google_genai import ChatGoogleGenerativeAI

    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=settings.gemini_api_key,
        temperature=temperature,
        max_output_tokens=8192,
    )


def get_bedrock_llm(temperature: float = 0.3) -> Optional[BaseChatModel]:
    """Get AWS Bedrock LLM if available."""
    if not settings.has_bedrock_credentials():
        return None

    from langchain_aws import ChatBedrock
    import boto3

    bedrock_client = boto3.client(
        "bedrock-runtime",
        region_name=settings.aws_region,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
    )

    return ChatBedrock(
        client=bedrock_client,
        model_id=settings.bedrock_model_id,
        model_kwargs={"temperature": temperature},
    )


def get_llm(temperature: float = 0.3) -> BaseChatModel:
    """Get the best available LLM based on configuration and rate limits.

    Order of preference:
    1. If provider is "gemini" - use Gemini only
    2. If provider is "bedrock" - use Bedrock only
    3. If provider is "auto" - try Gemini first, fall back to Bedrock if rate limited

    Raises:
        RuntimeError: If no LLM is available
    """
    provider = settings.llm_provider.lower()

    if provider == "gemini":
        llm = get_gemini_llm(temperature)
        if llm:
            return llm
        raise RuntimeError("Gemini LLM not available. Check GEMINI_API_KEY.")

    if provider == "bedrock":
        llm = get_bedrock_llm(temperature)
        if llm:
            return llm
        raise RuntimeError(
            "Bedrock LLM not available. Check AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY."
        )

    # Auto mode - try Gemini first, fall back to Bedrock
    if not _gemini_rate_limited:
        llm = get_gemini_llm(temperature)
        if llm:
            return llm

    llm = get_bedrock_llm(temperature)
    if llm:
        return llm

    # Last resort - try Gemini even if rate limited
    llm = get_gemini_llm(temperature)
    if llm:
        return llm

    raise RuntimeError(
        "No LLM available. Configure either GEMINI_API_KEY or AWS Bedrock credentials."
    )


def invoke_with_fallback(llm: BaseChatModel, messages: list):
    """Invoke LLM, retrying once on Bedrock when Gemini reports a rate limit."""
    try:
        return llm.invoke(messages)
    except Exception as e:
        error_str = str(e).lower()

        if "rate" in error_str or "quota" in error_str or "429" in error_str:
            mark_gemini_rate_limited()
            logger.warning(f"Gemini rate limited, falling back to Bedrock: {e}")

            fallback_llm = get_bedrock_llm()
            if fallback_llm:
                return fallback_llm.invoke(messages)

        raise


def generate_text(prompt: str, temperature: float = 0.3) -> str:
    """Single-prompt completion returning plain text."""
    response = invoke_with_fallback(get_llm(temperature), [HumanMessage(content=prompt)])
    content = response.content
    if isinstance(content, list):
        content = "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    return str(content or "")
