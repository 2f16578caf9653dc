"""SSM Parameter Store access for payment secrets.

Secrets live under ``/staybook/<environment>/...`` as SecureString
parameters and are cached for the lifetime of the process.
"""

import logging
from functools import lru_cache

import boto3
from botocore.exceptions import ClientError

from staybook.config import get_settings

logger = logging.getLogger(__name__)


class SSMServiceError(Exception):
    """Raised when a parameter cannot be retrieved."""


class SSMService:
    """Cached reader for environment-scoped secrets.

    Usage:
        ssm = get_ssm_service()
        secret_key = ssm.get_secret("stripe/secret_key")
    """

    def __init__(self, environment: str | None = None) -> None:
        self.environment = environment or get_settings().environment
        self._client = boto3.client("ssm")
        self._cache: dict[str, str] = {}

    def parameter_path(self, name: str) -> str:
        """Full parameter path for a secret name, e.g. ``stripe/secret_key``."""
        return f"/staybook/{self.environment}/{name.lstrip('/')}"

    def get_secret(self, name: str, *, use_cache: bool = True) -> str:
        """Retrieve and decrypt a secret.

        Args:
            name: Secret name relative to the environment prefix
            use_cache: Whether to use a cached value if available

        Raises:
            SSMServiceError: If the parameter is missing or access is denied
        """
        path = self.parameter_path(name)
        if use_cache and path in self._cache:
            return self._cache[path]

        try:
            logger.info("Fetching SSM parameter: %s", path)
            response = self._client.get_parameter(Name=path, WithDecryption=True)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "ParameterNotFound":
                raise SSMServiceError(f"SSM parameter not found: {path}") from e
            if error_code == "AccessDeniedException":
                raise SSMServiceError(
                    f"Access denied to SSM parameter: {path}. "
                    "Check IAM permissions for ssm:GetParameter."
                ) from e
            raise SSMServiceError(f"Failed to retrieve SSM parameter {path}: {e}") from e

        value: str = response["Parameter"]["Value"]
        self._cache[path] = value
        return value

    def clear_cache(self) -> None:
        self._cache.clear()


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Get the shared SSMService instance."""
    return SSMService()
