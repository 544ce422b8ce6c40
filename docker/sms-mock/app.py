import logging
import secrets
import sys
import time
import uuid

from fastapi import FastAPI, HTTPException, status
from pydantic import BaseModel

logging.basicConfig(stream=sys.stdout, level=logging.INFO, format="%(asctime)sZ %(levelname)s %(message)s")

CODE_TTL_SECONDS = 600

app = FastAPI(title="SMS Verify Mock", version="1.0.0")

# destination -> (sid, code, expires_at)
_pending: dict[str, tuple[str, str, float]] = {}


class StartVerification(BaseModel):
    to: str
    channel: str = "sms"


class CheckVerification(BaseModel):
    to: str
    code: str
    channel: str = "sms"


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/verifications", status_code=status.HTTP_201_CREATED)
async def start(payload: StartVerification) -> dict:
    sid = "VE" + uuid.uuid4().hex
    code = f"{secrets.randbelow(1_000_000):06d}"
    _pending[payload.to] = (sid, code, time.monotonic() + CODE_TTL_SECONDS)
    logging.info("SMS-MOCK send to=%s channel=%s sid=%s code=%s", payload.to, payload.channel, sid, code)
    return {"sid": sid, "status": "pending"}


@app.post("/verification-checks")
async def check(payload: CheckVerification) -> dict:
    entry = _pending.get(payload.to)
    if entry is None or entry[2] < time.monotonic():
        _pending.pop(payload.to, None)
        raise HTTPException(status_code=404, detail="no pending verification")
    sid, code, _ = entry
    if not secrets.compare_digest(code, payload.code):
        return {"sid": sid, "status": "pending"}
    del _pending[payload.to]
    return {"sid": sid, "status": "approved"}
