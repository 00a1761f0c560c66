from __future__ import annotations

from typing import Optional

import httpx

from authcore.domain.ports.sms_port import SmsPort

IDEMPOTENCY_HEADER = "Idempotency-Key"


class SmsDeliveryError(RuntimeError):
    pass


class HttpSmsAdapter(SmsPort):
    """
    JSON client for the SMS gateway: ``POST {base_url}/send {"to", "body"}``.

    Anything but a 2xx counts as a failed delivery, so the outbox dispatcher
    retries the message later. The outbox message id travels as the
    Idempotency-Key header, which lets the gateway drop replays.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
        send_path: str = "/send",
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/{send_path.lstrip('/')}"
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    async def send(self, *, to: str, body: str, idempotency_key: str | None = None) -> None:
        headers = {IDEMPOTENCY_HEADER: idempotency_key} if idempotency_key else None
        try:
            response = await self._client.post(
                self._url, json={"to": to, "body": body}, headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SmsDeliveryError(
                f"SMS gateway responded {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise SmsDeliveryError(f"SMS gateway unreachable: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
