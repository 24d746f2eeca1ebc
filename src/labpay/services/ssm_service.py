"""SSM Parameter Store service for secure secret retrieval.

Provides cached access to AWS SSM Parameter Store SecureString parameters.
Used for the Stripe keys, the CMS token and the automation shared secret
when they are not supplied through the environment.
"""

import logging
from functools import lru_cache
from typing import ClassVar

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from labpay.config import Settings
from labpay.models.errors import ConfigurationError

logger = logging.getLogger(__name__)


class SSMServiceError(Exception):
    """Raised when SSM parameter retrieval fails."""


class SSMService:
    """Service for retrieving secrets from AWS SSM Parameter Store.

    Features:
    - Retrieves SecureString parameters with automatic decryption
    - In-process caching to avoid repeated API calls

    Usage:
        ssm = get_ssm_service()
        stripe_key = ssm.get_parameter("/labpay/dev/stripe/secret_key")
    """

    _cache: ClassVar[dict[str, str]] = {}

    def __init__(self) -> None:
        self._client = boto3.client("ssm")

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Retrieve a parameter value from SSM Parameter Store.

        Args:
            name: Full parameter path (e.g., "/labpay/dev/stripe/secret_key")
            use_cache: Whether to use cached value if available (default: True)

        Returns:
            The decrypted parameter value.

        Raises:
            SSMServiceError: If parameter cannot be retrieved.
        """
        if use_cache and name in self._cache:
            logger.debug("SSM cache hit for %s", name)
            return self._cache[name]

        try:
            logger.info("Fetching SSM parameter: %s", name)
            response = self._client.get_parameter(Name=name, WithDecryption=True)
            value = response["Parameter"]["Value"]
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "ParameterNotFound":
                raise SSMServiceError(f"SSM parameter not found: {name}") from e
            if error_code == "AccessDeniedException":
                raise SSMServiceError(
                    f"Access denied to SSM parameter: {name}. "
                    "Check IAM permissions for ssm:GetParameter."
                ) from e
            raise SSMServiceError(f"Failed to retrieve SSM parameter {name}: {e}") from e
        except BotoCoreError as e:
            raise SSMServiceError(f"Failed to retrieve SSM parameter {name}: {e}") from e

        self._cache[name] = value
        return value

    def clear_cache(self) -> None:
        """Clear all cached parameters."""
        self._cache.clear()
        logger.info("SSM parameter cache cleared")


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Get the shared SSMService instance (singleton pattern)."""
    return SSMService()


# Secret attribute on Settings -> parameter name under the SSM prefix
SECRET_PARAMETERS: dict[str, str] = {
    "stripe_secret_key": "stripe/secret_key",
    "stripe_webhook_secret": "stripe/webhook_secret",
    "webflow_token": "webflow/token",
    "make_forwarding_secret": "make/forwarding_secret",
}


def resolve_secret(settings: Settings, field: str) -> str:
    """Resolve a secret from settings, falling back to SSM when enabled.

    Args:
        settings: Application settings
        field: Settings attribute name, one of SECRET_PARAMETERS

    Returns:
        The secret value.

    Raises:
        ConfigurationError: If the secret is not configured anywhere.
    """
    value = getattr(settings, field)
    if value:
        return value

    env_name = field.upper()
    if not settings.use_ssm:
        raise ConfigurationError(f"Missing required configuration: {env_name}")

    parameter = f"{settings.ssm_parameter_prefix}/{SECRET_PARAMETERS[field]}"
    try:
        return get_ssm_service().get_parameter(parameter)
    except SSMServiceError as e:
        raise ConfigurationError(f"Missing required configuration: {env_name} ({e})") from e
