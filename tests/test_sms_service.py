import json

import httpx
import pytest

from app.services.sms_service import (
    InfobipSmsProvider,
    LoggingSmsProvider,
    SmsGatewayError,
    SmsService,
    create_sms_service,
)


def _infobip(handler) -> InfobipSmsProvider:
    return InfobipSmsProvider(
        "https://example.api.infobip.com/",
        "test-key",
        "SalonBook",
        transport=httpx.MockTransport(handler),
    )


def _accepted(message_id="msg-1", group="PENDING_ACCEPTED"):
    return httpx.Response(
        200,
        json={"messages": [{"messageId": message_id, "status": {"groupName": group, "description": "ok"}}]},
    )


class TestInfobipSmsProvider:
    @pytest.mark.asyncio
    async def test_posts_single_text_and_returns_message_id(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return _accepted("abc-123")

        message_id = await _infobip(handler).send_sms("+972501234567", "hello")

        assert message_id == "abc-123"
        assert seen["url"] == "https://example.api.infobip.com/sms/2/text/single"
        assert seen["auth"] == "App test-key"
        assert seen["body"] == {"from": "SalonBook", "to": "+972501234567", "text": "hello"}

    @pytest.mark.asyncio
    async def test_accepted_group_is_success(self):
        message_id = await _infobip(lambda request: _accepted("m2", "ACCEPTED")).send_sms("+972501234567", "hi")
        assert message_id == "m2"

    @pytest.mark.asyncio
    async def test_rejected_group_raises(self):
        provider = _infobip(lambda request: _accepted("m3", "REJECTED"))
        with pytest.raises(SmsGatewayError):
            await provider.send_sms("+972501234567", "hi")

    @pytest.mark.asyncio
    async def test_http_error_status_raises(self):
        provider = _infobip(lambda request: httpx.Response(401, json={"requestError": "unauthorized"}))
        with pytest.raises(SmsGatewayError):
            await provider.send_sms("+972501234567", "hi")

    @pytest.mark.asyncio
    async def test_empty_messages_raises(self):
        provider = _infobip(lambda request: httpx.Response(200, json={"messages": []}))
        with pytest.raises(SmsGatewayError):
            await provider.send_sms("+972501234567", "hi")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SmsGatewayError):
            await _infobip(handler).send_sms("+972501234567", "hi")


class TestSmsService:
    @pytest.mark.asyncio
    async def test_rejects_non_e164_recipient(self, sms_service, sms_provider):
        with pytest.raises(SmsGatewayError):
            await sms_service.send("0501234567", "hello", "test")
        assert sms_provider.messages == []

    @pytest.mark.asyncio
    async def test_otp_text_contains_code(self, sms_service, sms_provider):
        await sms_service.send_otp_sms("+972501234567", "123456")
        to, text = sms_provider.messages[0]
        assert to == "+972501234567"
        assert "123456" in text

    @pytest.mark.asyncio
    async def test_confirmation_text_contains_slot_and_link(self, sms_service, sms_provider):
        await sms_service.send_booking_confirmation_sms(
            "+972501234567", "10/01/2025 at 10:00", "http://localhost:3000/manage/tok"
        )
        _, text = sms_provider.messages[0]
        assert "10/01/2025 at 10:00" in text
        assert "http://localhost:3000/manage/tok" in text


def test_without_api_key_messages_are_only_logged():
    service = create_sms_service(api_key="")
    assert isinstance(service, SmsService)
    assert isinstance(service.provider, LoggingSmsProvider)


def test_with_api_key_uses_infobip():
    service = create_sms_service(api_key="live-key")
    assert isinstance(service.provider, InfobipSmsProvider)
    assert service.provider.api_key == "live-key"


@pytest.mark.asyncio
async def test_logging_provider_returns_mock_id():
    message_id = await LoggingSmsProvider().send_sms("+972501234567", "hello")
    assert message_id.startswith("mock-")
