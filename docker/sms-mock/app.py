import logging
import sys

from fastapi import FastAPI, Request, Response, status
from pydantic import BaseModel, Field

logging.basicConfig(stream=sys.stdout, level=logging.INFO, format="%(asctime)sZ %(levelname)s %(message)s")

app = FastAPI(title="SMS Gateway Mock", version="1.0.0")

# Idempotency keys already delivered; a replay is acknowledged but not re-sent.
_seen: set[str] = set()


class SendSms(BaseModel):
    to: str = Field(..., min_length=1)
    body: str = Field(..., max_length=480)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/send", status_code=status.HTTP_202_ACCEPTED)
async def send(payload: SendSms, request: Request) -> Response:
    idem = request.headers.get("Idempotency-Key")
    if idem and idem in _seen:
        logging.info("SMS-MOCK duplicate idem=%s ignored", idem)
        return Response(status_code=status.HTTP_202_ACCEPTED)
    if idem:
        _seen.add(idem)
    logging.info("SMS-MOCK send to=%s idem=%s body=%r", payload.to, idem, payload.body)
    return Response(status_code=status.HTTP_202_ACCEPTED)
