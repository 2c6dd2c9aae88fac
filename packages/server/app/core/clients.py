"""
External service clients, built once per application and injected into
request handlers through FastAPI dependencies.
"""

from __future__ import annotations

from fastapi import FastAPI, Request

from app.core.config import Settings
from app.services.payments import PaymentService, PayPalGateway
from app.services.twitch import TwitchClient


def init_clients(app: FastAPI, settings: Settings) -> None:
    """Attach shared clients to app.state unless a test already did."""
    if getattr(app.state, "twitch", None) is None:
        app.state.twitch = TwitchClient(settings)
    if getattr(app.state, "payments", None) is None:
        app.state.payments = PaymentService(PayPalGateway(settings), settings)


async def close_clients(app: FastAPI) -> None:
    twitch = getattr(app.state, "twitch", None)
    if twitch is not None:
        await twitch.aclose()
    payments = getattr(app.state, "payments", None)
    gateway = getattr(payments, "gateway", None)
    if hasattr(gateway, "aclose"):
        await gateway.aclose()


def get_twitch_client(request: Request) -> TwitchClient:
    return request.app.state.twitch


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payments
