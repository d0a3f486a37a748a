from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import stripe
from fastapi.concurrency import run_in_threadpool

from .config import Settings
from .errors import ConfirmationUnavailable
from .logger import logger


@dataclass(frozen=True)
class PaymentConfirmation:
    reference: str
    status: str

    @property
    def paid(self) -> bool:
        return self.status == "paid"


class PaymentConfirmer(ABC):
    @abstractmethod
    async def lookup(self, session_ref: str) -> PaymentConfirmation:
        """Return the processor's view of ``session_ref``.

        Raises ConfirmationUnavailable when the processor cannot answer.
        """


class StripeConfirmer(PaymentConfirmer):
    """Reads Checkout Sessions; Stripe redirects buyers to /ticket?session_id=..."""

    def __init__(self, api_key: Optional[str]):
        self.api_key = api_key

    def _retrieve(self, session_ref: str):
        return stripe.checkout.Session.retrieve(session_ref, api_key=self.api_key)

    async def lookup(self, session_ref: str) -> PaymentConfirmation:
        try:
            session = await run_in_threadpool(self._retrieve, session_ref)
        except stripe.InvalidRequestError as e:
            # unknown or malformed session id: nothing was paid under it
            logger.warning(f"PAYMENT: session {session_ref} rejected by Stripe: {e.user_message or e}")
            return PaymentConfirmation(reference=session_ref, status="unknown")
        except stripe.StripeError as e:
            raise ConfirmationUnavailable(f"Stripe lookup failed for {session_ref}") from e

        return PaymentConfirmation(reference=session.id, status=session.payment_status or "unpaid")


class StaticConfirmer(PaymentConfirmer):
    """Fixed reference -> status table for local runs and tests. Unknown references are unpaid."""

    def __init__(self, statuses: Optional[dict[str, str]] = None):
        self.statuses = dict(statuses or {})

    def mark(self, session_ref: str, status: str = "paid") -> None:
        self.statuses[session_ref] = status

    async def lookup(self, session_ref: str) -> PaymentConfirmation:
        return PaymentConfirmation(reference=session_ref, status=self.statuses.get(session_ref, "unpaid"))


def build_confirmer(settings: Settings) -> PaymentConfirmer:
    if settings.payment_backend == "stripe":
        if not settings.stripe_secret_key:
            logger.warning("PAYMENT: STRIPE_SECRET_KEY is not set; every ticket lookup will fail")
        return StripeConfirmer(settings.stripe_secret_key)
    if settings.payment_backend == "static":
        return StaticConfirmer()
    raise ValueError(f"unknown PAYMENT_BACKEND {settings.payment_backend!r}")
