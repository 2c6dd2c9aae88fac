"""
Payments for paid modpacks.

The gateway only creates payments; access is granted when the gateway's
webhook confirms the sale. Webhooks are applied at most once per payment,
so retried deliveries never create a second acquisition.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Protocol

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import Settings
from app.core.errors import BadRequestError, NotFoundError, PaymentGatewayError
from app.models.modpack import Modpack
from app.models.payment import Payment
from app.models.user import User
from app.services.acquisitions import record_acquisition
from app.services.modpacks import get_any_modpack

from modstore_shared.schemas.common import AcquisitionMethod, PaymentStatus

log = structlog.get_logger()

SALE_COMPLETED = "PAYMENT.SALE.COMPLETED"
CENTS = Decimal("0.01")

# verify-webhook-signature field -> notification header
SIGNATURE_HEADERS = {
    "auth_algo": "PAYPAL-AUTH-ALGO",
    "cert_url": "PAYPAL-CERT-URL",
    "transmission_id": "PAYPAL-TRANSMISSION-ID",
    "transmission_sig": "PAYPAL-TRANSMISSION-SIG",
    "transmission_time": "PAYPAL-TRANSMISSION-TIME",
}


def split_commission(amount: Decimal, rate: Decimal) -> tuple[Decimal, Decimal]:
    """Return (platform commission, publisher share), rounded to cents."""
    commission = (amount * rate).quantize(CENTS, rounding=ROUND_HALF_UP)
    return commission, (amount - commission).quantize(CENTS, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Gateways
# ---------------------------------------------------------------------------

@dataclass
class GatewayPayment:
    external_id: str
    approval_url: Optional[str] = None


class PaymentGateway(Protocol):
    name: str

    async def create_payment(
        self,
        *,
        amount: Decimal,
        currency: str,
        description: str,
        custom: dict,
    ) -> GatewayPayment: ...

    async def verify_webhook(self, headers: Mapping[str, str], event: dict) -> bool: ...


class PayPalGateway:
    """PayPal REST v1 payments with client-credentials auth."""

    name = "paypal"

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()

    async def _access_token(self) -> str:
        if not self.settings.paypal_client_id or not self.settings.paypal_client_secret:
            raise PaymentGatewayError("PayPal is not configured")
        try:
            response = await self.http.post(
                f"{self.settings.paypal_base_url}/v1/oauth2/token",
                data={"grant_type": "client_credentials"},
                auth=(self.settings.paypal_client_id, self.settings.paypal_client_secret),
            )
        except httpx.HTTPError as exc:
            raise PaymentGatewayError("PayPal token request failed") from exc
        if response.status_code != 200:
            log.warning("paypal.token_failed", status=response.status_code)
            raise PaymentGatewayError("PayPal token request failed")
        return response.json()["access_token"]

    async def create_payment(
        self,
        *,
        amount: Decimal,
        currency: str,
        description: str,
        custom: dict,
    ) -> GatewayPayment:
        token = await self._access_token()
        body = {
            "intent": "sale",
            "payer": {"payment_method": "paypal"},
            "redirect_urls": {
                "return_url": self.settings.paypal_return_url,
                "cancel_url": self.settings.paypal_cancel_url,
            },
            "transactions": [
                {
                    "amount": {"total": str(amount.quantize(CENTS)), "currency": currency},
                    "description": description,
                    "custom": json.dumps(custom),
                }
            ],
        }
        try:
            response = await self.http.post(
                f"{self.settings.paypal_base_url}/v1/payments/payment",
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise PaymentGatewayError("PayPal payment creation failed") from exc
        if response.status_code not in (200, 201):
            log.warning("paypal.create_failed", status=response.status_code)
            raise PaymentGatewayError("PayPal payment creation failed")

        data = response.json()
        approval_url = next(
            (link.get("href") for link in data.get("links", []) if link.get("rel") == "approval_url"),
            None,
        )
        return GatewayPayment(external_id=data["id"], approval_url=approval_url)

    async def verify_webhook(self, headers: Mapping[str, str], event: dict) -> bool:
        """Ask PayPal whether the notification was signed for our webhook."""
        if not self.settings.paypal_webhook_id:
            log.warning("paypal.webhook_id_missing")
            return False
        body = {field: headers.get(header) for field, header in SIGNATURE_HEADERS.items()}
        if not all(body.values()):
            log.warning("paypal.webhook_headers_missing")
            return False
        body["webhook_id"] = self.settings.paypal_webhook_id
        body["webhook_event"] = event

        token = await self._access_token()
        try:
            response = await self.http.post(
                f"{self.settings.paypal_base_url}/v1/notifications/verify-webhook-signature",
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise PaymentGatewayError("PayPal webhook verification failed") from exc
        if response.status_code != 200:
            log.warning("paypal.verify_failed", status=response.status_code)
            raise PaymentGatewayError("PayPal webhook verification failed")
        return response.json().get("verification_status") == "SUCCESS"


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class PaymentService:
    def __init__(self, gateway: PaymentGateway, settings: Settings):
        self.gateway = gateway
        self.settings = settings

    async def create_payment(
        self, session: AsyncSession, user: User, modpack: Modpack
    ) -> Payment:
        """Start a gateway payment for the modpack's price and record it as pending."""
        if modpack.price is None or modpack.price <= 0:
            raise BadRequestError("Modpack has no price configured", code="MODPACK_PRICE_MISSING")

        currency = modpack.currency or self.settings.default_currency
        pending = await self._pending_payment(session, user, modpack, currency)
        if pending is not None:
            log.info("payment.reused", payment_id=str(pending.id), modpack_id=str(modpack.id))
            return pending

        created = await self.gateway.create_payment(
            amount=modpack.price,
            currency=currency,
            description=f"Modstore: {modpack.name}",
            custom={"modpackId": str(modpack.id), "userId": str(user.id)},
        )

        payment = Payment(
            user_id=user.id,
            modpack_id=modpack.id,
            gateway=self.gateway.name,
            external_id=created.external_id,
            approval_url=created.approval_url,
            amount=modpack.price,
            currency=currency,
            status=PaymentStatus.PENDING.value,
        )
        session.add(payment)
        await session.flush()

        log.info(
            "payment.created",
            payment_id=str(payment.id),
            external_id=created.external_id,
            modpack_id=str(modpack.id),
            user_id=str(user.id),
        )
        return payment

    async def _pending_payment(
        self, session: AsyncSession, user: User, modpack: Modpack, currency: str
    ) -> Optional[Payment]:
        """The caller's newest pending payment for this modpack at its current price."""
        result = await session.execute(
            select(Payment)
            .where(
                Payment.user_id == user.id,
                Payment.modpack_id == modpack.id,
                Payment.gateway == self.gateway.name,
                Payment.status == PaymentStatus.PENDING.value,
            )
            .order_by(Payment.created_at.desc())
        )
        for payment in result.scalars().all():
            if payment.amount == modpack.price and payment.currency == currency:
                return payment
        return None

    async def handle_webhook(
        self,
        session: AsyncSession,
        payload: dict,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[Payment]:
        """Apply a gateway notification. Returns the payment it settled, if any.

        Sale notifications must pass gateway verification and match the
        recorded amount and currency; anything else is rejected before any write.
        """
        event_type = payload.get("event_type")
        if event_type != SALE_COMPLETED:
            log.info("payment.webhook_ignored", event_type=event_type)
            return None

        if not await self.gateway.verify_webhook(headers or {}, payload):
            log.warning("payment.webhook_unverified", event_id=payload.get("id"))
            raise BadRequestError("Webhook signature not verified", code="WEBHOOK_NOT_VERIFIED")

        resource = payload.get("resource") or {}
        sale_id = resource.get("id")
        if not sale_id:
            raise BadRequestError("Webhook resource id missing", code="INVALID_WEBHOOK_PAYLOAD")

        payment = await self._locate_payment(session, resource)
        if payment.status == PaymentStatus.COMPLETED.value:
            log.info("payment.webhook_duplicate", payment_id=str(payment.id), sale_id=sale_id)
            return payment

        amount = resource.get("amount") or {}
        try:
            reported = Decimal(str(amount.get("total")))
        except InvalidOperation:
            reported = None
        if reported != payment.amount or amount.get("currency") != payment.currency:
            log.warning(
                "payment.amount_mismatch",
                payment_id=str(payment.id),
                expected=f"{payment.amount} {payment.currency}",
                reported=f"{amount.get('total')} {amount.get('currency')}",
            )
            raise BadRequestError(
                "Webhook amount does not match the payment", code="PAYMENT_AMOUNT_MISMATCH"
            )

        modpack = await get_any_modpack(payment.modpack_id, session)
        await record_acquisition(
            session,
            payment.user_id,
            modpack,
            AcquisitionMethod.PAID,
            transaction_id=sale_id,
        )

        commission, publisher_share = split_commission(payment.amount, self.settings.commission_rate)
        payment.status = PaymentStatus.COMPLETED.value
        payment.transaction_id = sale_id
        payment.commission_amount = commission
        payment.publisher_amount = publisher_share
        session.add(payment)
        await session.flush()

        log.info(
            "payment.completed",
            payment_id=str(payment.id),
            sale_id=sale_id,
            modpack_id=str(payment.modpack_id),
            user_id=str(payment.user_id),
            commission=str(commission),
            publisher_amount=str(publisher_share),
        )
        return payment

    async def _locate_payment(self, session: AsyncSession, resource: dict) -> Payment:
        parent = resource.get("parent_payment")
        if parent:
            result = await session.execute(select(Payment).where(Payment.external_id == parent))
            payment = result.scalar_one_or_none()
            if payment:
                return payment

        # Fall back to the ids we embedded when creating the payment
        try:
            custom = json.loads(resource.get("custom") or "")
            user_id = uuid.UUID(custom["userId"])
            modpack_id = uuid.UUID(custom["modpackId"])
        except (ValueError, KeyError, TypeError):
            raise BadRequestError("Webhook payment reference missing", code="INVALID_WEBHOOK_PAYLOAD")

        result = await session.execute(
            select(Payment)
            .where(
                Payment.user_id == user_id,
                Payment.modpack_id == modpack_id,
                Payment.gateway == self.gateway.name,
            )
            .order_by(Payment.status != PaymentStatus.PENDING.value, Payment.created_at.desc())
        )
        payment = result.scalars().first()
        if not payment:
            raise NotFoundError("Payment not found", code="PAYMENT_NOT_FOUND")
        return payment
