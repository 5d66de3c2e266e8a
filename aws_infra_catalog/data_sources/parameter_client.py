"""AWS SSM Parameter Store client exposing single-key and prefix lookups."""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    HTTPClientError,
    ReadTimeoutError,
)

from ..core.error_handling import (
    NotFoundError,
    ParameterSourceError,
    ThrottledError,
    TransportError,
    ValidationError,
)
from ..core.logging import get_logger
from ..core.models import ParameterEntry, validate_parameter_path

NOT_FOUND_CODES = {"ParameterNotFound", "ParameterVersionNotFound"}
THROTTLING_CODES = {
    "ThrottlingException",
    "Throttling",
    "TooManyRequestsException",
    "RequestLimitExceeded",
}
TRANSIENT_CODES = {"InternalServerError", "ServiceUnavailable", "RequestTimeout"}
CONNECTION_ERRORS = (
    EndpointConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionClosedError,
    HTTPClientError,
)


def translate_error(error: Exception, path: str) -> Exception:
    """Map a boto3/botocore exception onto the catalog error taxonomy.

    Args:
        error: Exception raised by the SSM client
        path: Parameter path or prefix of the failed call

    Returns:
        Equivalent catalog exception
    """
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        message = error.response.get("Error", {}).get("Message", str(error))

        if code in NOT_FOUND_CODES:
            return NotFoundError(f"Parameter not found: {path}", path, code)
        if code in THROTTLING_CODES or "rate exceeded" in message.lower():
            return ThrottledError(f"Throttled on {path}: {message}", path, code)
        if code in TRANSIENT_CODES:
            return TransportError(
                f"Transient failure on {path}: {message}", path, code
            )
        return ParameterSourceError(
            f"{code or 'ClientError'} on {path}: {message}", path, code
        )

    if isinstance(error, CONNECTION_ERRORS):
        return TransportError(f"Transport failure on {path}: {error}", path)

    if isinstance(error, BotoCoreError):
        return ParameterSourceError(f"Client failure on {path}: {error}", path)

    return error


class ParameterSourceClient:
    """Async facade over the SSM Parameter Store.

    boto3 is synchronous, so every request runs in the default executor and the
    awaiting coroutine is suspended meanwhile. No retries happen here; the caller
    wraps operations in a RetryController.
    """

    def __init__(
        self,
        aws_session=None,
        region: str = "us-east-1",
        max_results: int = 10,
        pagination_delay: float = 0.04,
        client=None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize parameter source client.

        Args:
            aws_session: Boto3 session for AWS API calls
            region: AWS region for SSM client operations
            max_results: Page size for prefix listings
            pagination_delay: Pause between listing pages (seconds)
            client: Pre-built SSM client, mainly for tests
            sleep: Coroutine function used for the pagination pause
        """
        self.aws_session = aws_session
        self.region = region
        self.max_results = max_results
        self.pagination_delay = pagination_delay
        self._client = client
        self._sleep = sleep
        self.logger = get_logger(f"ssm_client.{region}")

    @classmethod
    def from_config(cls, config) -> "ParameterSourceClient":
        session = None
        if config.aws_profile:
            session = boto3.Session(profile_name=config.aws_profile)
        return cls(
            aws_session=session,
            region=config.aws_region,
            max_results=config.max_results,
            pagination_delay=config.pagination_delay,
        )

    def get_client(self):
        """Get SSM client with connection reuse."""
        if self._client is None:
            # Retries belong to the RetryController, so botocore makes one attempt
            boto_config = BotoConfig(
                retries={"max_attempts": 1, "mode": "standard"},
                max_pool_connections=50,
            )
            if self.aws_session:
                self._client = self.aws_session.client(
                    "ssm", region_name=self.region, config=boto_config
                )
            else:
                self._client = boto3.client(
                    "ssm", region_name=self.region, config=boto_config
                )
            self.logger.info(f"Initialized SSM client for region: {self.region}")
        return self._client

    async def _call(self, path: str, method: str, **kwargs) -> dict:
        client = self.get_client()
        try:
            return await asyncio.to_thread(getattr(client, method), **kwargs)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, path) from e

    async def get_parameter(self, path: str) -> ParameterEntry:
        """Get a single parameter.

        Args:
            path: Absolute parameter path

        Returns:
            ParameterEntry for the path

        Raises:
            NotFoundError: If the parameter does not exist
            ThrottledError: If the store rejected the call for rate limiting
            TransportError: For connectivity and timeout failures
            ValidationError: If the path or the response is malformed
        """
        validate_parameter_path(path)
        response = await self._call(path, "get_parameter", Name=path)

        parameter = response.get("Parameter") or {}
        value = parameter.get("Value")
        if not isinstance(value, str):
            raise ValidationError(f"Parameter {path} has no string value")
        return ParameterEntry(path=parameter.get("Name") or path, value=value)

    async def _next_page(self, prefix: str, pages) -> Optional[dict]:
        """Pull the next page off a paginator iterator in a worker thread."""
        try:
            return await asyncio.to_thread(next, pages, None)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, prefix) from e

    async def list_parameters_by_prefix(
        self, prefix: str, recursive: bool = False
    ) -> List[ParameterEntry]:
        """List every parameter under a prefix with the boto3 paginator.

        A failure on any page aborts the whole listing; partial pages are never
        returned. Each call starts a fresh listing.

        Args:
            prefix: Absolute path prefix
            recursive: Include parameters below direct children

        Returns:
            List of ParameterEntry in the order returned by the store
        """
        validate_parameter_path(prefix)
        self.logger.debug(f"Listing SSM parameters under {prefix}")

        paginator = self.get_client().get_paginator("get_parameters_by_path")
        pages = iter(
            paginator.paginate(
                Path=prefix,
                Recursive=recursive,
                MaxResults=self.max_results,
            )
        )

        entries: List[ParameterEntry] = []
        page_count = 0
        page = await self._next_page(prefix, pages)
        while page is not None:
            page_count += 1
            for param in page.get("Parameters", []):
                name = param.get("Name")
                value = param.get("Value")
                if not name or not isinstance(value, str):
                    raise ValidationError(
                        f"Malformed parameter under {prefix}: {param}"
                    )
                entries.append(ParameterEntry(path=name, value=value))

            if not page.get("NextToken"):
                break
            # Throttling protection between pages
            if self.pagination_delay > 0:
                await self._sleep(self.pagination_delay)
            page = await self._next_page(prefix, pages)

        self.logger.debug(
            f"Fetched {len(entries)} parameters from {prefix}", pages=page_count
        )
        return entries
