import httpx
import logging
from typing import Optional

from petkoi.domain.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)


class ResendEmailClient:
    def __init__(self, base_url: str, api_key: str, sender: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._base_url = base_url
        self._api_key = api_key
        self._sender = sender
        self._transport = transport

    async def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> None:
        if not self._api_key:
            logger.error("RESEND_API_KEY не задан")
            raise EmailDeliveryError("Email service not configured")

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    f"{self._base_url}/emails",
                    json={
                        "from": self._sender,
                        "to": to,
                        "subject": subject,
                        "text": text,
                        "html": html
                    },
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    timeout=10.0
                )

                if response.status_code >= 400:
                    logger.error(f"Resend ошибка: {response.status_code} {response.text}")
                    raise EmailDeliveryError(f"Resend ошибка: {response.status_code}")

        except httpx.RequestError as e:
            logger.error(f"Resend ошибка подключения: {e}")
            raise EmailDeliveryError(f"Resend не доступен: {str(e)}")

        logger.info(f"Письмо '{subject}' отправлено на {to}")
