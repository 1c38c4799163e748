# app/clients/push.py

import httpx
from app.core.config import settings
import logging

logger = logging.getLogger(__name__)

class PushClient:
    """
    Асинхронный клиент для REST API OneSignal.
    Пользователь адресуется по external_user_id (ID в нашей БД).
    """
    def __init__(self, base_url: str, app_id: str, api_key: str):
        self.app_id = app_id
        self.enabled = bool(app_id and api_key)
        timeouts = httpx.Timeout(10.0, read=20.0)
        self.async_client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Basic {api_key}"},
            timeout=timeouts
        )

    async def send(self, user_id: int, title: str, message: str, data: dict | None = None) -> dict | None:
        """
        Отправляет push одному пользователю. Возвращает JSON-ответ OneSignal
        или None, если push отключен в настройках.
        В случае HTTP-ошибки (4xx/5xx) выбрасывает исключение.
        """
        if not self.enabled:
            logger.info(f"Push disabled, skipping notification for user {user_id}: {title}")
            return None

        payload = {
            "app_id": self.app_id,
            "include_external_user_ids": [str(user_id)],
            "headings": {"en": title, "ru": title},
            "contents": {"en": message, "ru": message},
            "data": data or {},
        }
        try:
            response = await self.async_client.post("/notifications", json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.RequestError as e:
            logger.error(f"Network error during push request to {e.request.url!r}.", exc_info=True)
            raise
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error during push request to {e.request.url!r}: {e.response.text}", exc_info=True)
            raise

# Создаем синглтон
push_client = PushClient(
    base_url=settings.ONESIGNAL_API_URL,
    app_id=settings.ONESIGNAL_APP_ID,
    api_key=settings.ONESIGNAL_API_KEY
)
