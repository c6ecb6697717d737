"""
SMS Gateway
Sends booking-flow text messages through Infobip, or logs them when no provider is configured
"""

import logging
import time
from typing import Optional, Protocol

import httpx

from ..config import (
    INFOBIP_API_KEY,
    INFOBIP_BASE_URL,
    OTP_EXPIRY_MINUTES,
    SMS_SENDER_ID,
    SMS_TIMEOUT_SECONDS,
)
from ..shared.validators import is_e164

logger = logging.getLogger(__name__)

ACCEPTED_STATUS_GROUPS = {"PENDING_ACCEPTED", "ACCEPTED"}


class SmsGatewayError(Exception):
    """Raised when a message could not be handed to the provider"""


class SmsProvider(Protocol):
    async def send_sms(self, to_e164: str, text: str) -> str:
        """Send a text and return the provider message id"""
        ...


class InfobipSmsProvider:
    """Infobip REST API (single text endpoint)"""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        sender_id: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.sender_id = sender_id
        self.timeout = timeout
        self.transport = transport

    async def send_sms(self, to_e164: str, text: str) -> str:
        payload = {"from": self.sender_id, "to": to_e164, "text": text}
        headers = {
            "Authorization": f"App {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/sms/2/text/single",
                    json=payload,
                    headers=headers,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Infobip request failed: {str(e)}")
            raise SmsGatewayError(f"Failed to send SMS: {str(e)}") from e

        logger.info(f"📡 Infobip API response status: {response.status_code}")

        if response.status_code not in (200, 201):
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            raise SmsGatewayError(f"Infobip API error: {response.status_code} - {error_data}")

        messages = response.json().get("messages") or []
        if not messages:
            raise SmsGatewayError("No message data returned from Infobip")

        message = messages[0]
        status = message.get("status") or {}
        if status.get("groupName") not in ACCEPTED_STATUS_GROUPS:
            raise SmsGatewayError(
                f"SMS sending failed: {status.get('groupName')} - {status.get('description')}"
            )

        return message.get("messageId") or "unknown"


class LoggingSmsProvider:
    """Development stand-in: writes the message to the log instead of sending it"""

    async def send_sms(self, to_e164: str, text: str) -> str:
        logger.info(f"📱 [mock SMS] to={to_e164}: {text}")
        return f"mock-{int(time.time() * 1000)}"


class SmsService:
    """Message templates for the booking flow"""

    def __init__(self, provider: SmsProvider):
        self.provider = provider

    async def send(self, to_phone: str, text: str, message_type: str) -> str:
        if not is_e164(to_phone):
            logger.warning(f"Phone number not in E.164 format: {to_phone}")
            raise SmsGatewayError("Phone number must be in E.164 format (e.g., +972501234567)")

        logger.info(f"🚀 Sending SMS: type={message_type}, to={to_phone}")
        message_id = await self.provider.send_sms(to_phone, text)
        logger.info(f"✅ SMS sent: {message_type} to {to_phone} (id: {message_id})")
        return message_id

    async def send_otp_sms(self, phone: str, code: str) -> str:
        text = f"Your verification code is {code}. Valid for {OTP_EXPIRY_MINUTES} minutes. If you didn't request it, ignore this message."
        return await self.send(phone, text, "otp")

    async def send_booking_confirmation_sms(self, phone: str, date_time: str, manage_url: str) -> str:
        text = f"Your appointment is booked for {date_time}. Manage or cancel: {manage_url}"
        return await self.send(phone, text, "booking_confirmation")

    async def send_booking_cancellation_sms(self, phone: str, date_time: str, booking_url: str) -> str:
        text = f"Your appointment for {date_time} was cancelled as requested. Book a new one: {booking_url}"
        return await self.send(phone, text, "booking_cancellation")


def create_sms_service(api_key: Optional[str] = None) -> SmsService:
    """Build the SMS service; without an Infobip key every message is only logged"""
    api_key = api_key if api_key is not None else INFOBIP_API_KEY
    if not api_key:
        logger.warning("⚠️ INFOBIP_API_KEY not set, using logging SMS provider")
        return SmsService(LoggingSmsProvider())

    return SmsService(
        InfobipSmsProvider(INFOBIP_BASE_URL, api_key, SMS_SENDER_ID, timeout=SMS_TIMEOUT_SECONDS)
    )


_sms_service: Optional[SmsService] = None


def get_sms_service() -> SmsService:
    """FastAPI dependency returning the process-wide SMS service"""
    global _sms_service

    if _sms_service is None:
        _sms_service = create_sms_service()
    return _sms_service
