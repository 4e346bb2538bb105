# restaurant_bot/payments.py
"""
Paystack payment gateway client.

The conversation layer only depends on ``PaymentGateway``: something with an
async ``initialize`` and ``verify``. ``PaystackGateway`` talks to the real
API over httpx; tests substitute their own implementation.

Contract:
    initialize(amount_minor, reference, callback_url, email) -> PaymentInitialization
        GatewayError on network failure, timeout, non-2xx status, or a
        response without an authorization URL.

    verify(reference) -> PaymentVerification
        GatewayError on network failure or timeout. An unknown reference is
        returned as status "not_found", not raised.

Usage:
    gateway = PaystackGateway(secret_key="sk_test_...", timeout=10)
    init = await gateway.initialize(150000, "order_12", "http://localhost:9000/payment/callback")
    result = await gateway.verify("order_12")
    await gateway.aclose()
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from .errors import GatewayError
from .schemas.payments import (
    PaymentInitialization,
    PaymentVerification,
    PaystackInitializeRequest,
    PaystackInitializeResponse,
    PaystackVerifyResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.paystack.co"
DEFAULT_CUSTOMER_EMAIL = "customer@example.com"
VERIFY_NOT_FOUND = "not_found"

T = TypeVar("T")


async def call_with_timeout(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """Await a gateway call, turning a timeout into GatewayError."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise GatewayError(f"Payment {operation} timed out after {timeout}s") from exc


class PaymentGateway(ABC):
    """Abstract payment provider."""

    @abstractmethod
    async def initialize(
        self,
        amount_minor: int,
        reference: str,
        callback_url: str,
        email: Optional[str] = None,
    ) -> PaymentInitialization:
        """
        Start a transaction and return where to send the customer.

        Args:
            amount_minor: Amount in minor units (kobo)
            reference: Our unique reference for the transaction
            callback_url: Where the provider redirects after payment
            email: Customer email required by the provider
        """
        pass

    @abstractmethod
    async def verify(self, reference: str) -> PaymentVerification:
        """Ask the provider for the current status of a transaction."""
        pass

    async def aclose(self) -> None:
        """Release any network resources."""
        return None


def _provider_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


class PaystackGateway(PaymentGateway):
    """Paystack transaction API over httpx."""

    def __init__(
        self,
        secret_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        default_email: str = DEFAULT_CUSTOMER_EMAIL,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            secret_key: Paystack secret key (sent as a bearer token)
            base_url: API root, overridable for tests
            timeout: Per-request limit in seconds for httpx
            default_email: Email used when initialize() gets none
            client: Pre-built client (tests pass one with a MockTransport)
        """
        if not secret_key:
            raise ValueError("Paystack secret key is required")

        self.timeout = timeout
        self.default_email = default_email
        self.client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
        )
        self._headers = {
            "Authorization": f"Bearer {secret_key}",
            "Content-Type": "application/json",
        }
        logger.debug("Paystack gateway initialized with key %s****", secret_key[:8])

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.request(method, url, headers=self._headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise GatewayError(f"Paystack {method} {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise GatewayError(f"Paystack {method} {url} failed: {exc}") from exc

    async def initialize(
        self,
        amount_minor: int,
        reference: str,
        callback_url: str,
        email: Optional[str] = None,
    ) -> PaymentInitialization:
        payload = PaystackInitializeRequest(
            email=email or self.default_email,
            amount=amount_minor,
            reference=reference,
            callback_url=callback_url,
        )

        response = await self._request(
            "POST", "/transaction/initialize", json=payload.model_dump()
        )

        if not response.is_success:
            message = _provider_message(response)
            logger.warning(
                "Paystack initialize for %s returned %s: %s",
                reference, response.status_code, message,
            )
            raise GatewayError(
                f"Paystack initialize returned {response.status_code}",
                provider_message=message,
                status_code=response.status_code,
            )

        try:
            parsed = PaystackInitializeResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as exc:
            raise GatewayError("Invalid Paystack response") from exc

        logger.info("Paystack transaction initialized for %s", reference)
        return parsed.data

    async def verify(self, reference: str) -> PaymentVerification:
        response = await self._request("GET", f"/transaction/verify/{quote(reference, safe='')}")

        if not response.is_success:
            message = _provider_message(response)
            # Paystack answers an unknown reference with 400 "Transaction reference not found"
            if response.status_code == 404 or (message and "not found" in message.lower()):
                logger.info("Paystack has no transaction %s", reference)
                return PaymentVerification(status=VERIFY_NOT_FOUND, reference=reference)
            raise GatewayError(
                f"Paystack verify returned {response.status_code}",
                provider_message=message,
                status_code=response.status_code,
            )

        try:
            parsed = PaystackVerifyResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as exc:
            raise GatewayError("Invalid Paystack verify response") from exc

        logger.info("Paystack transaction %s status: %s", reference, parsed.data.status)
        return parsed.data

    async def aclose(self) -> None:
        await self.client.aclose()
