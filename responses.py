# responses.py ─────────────────────────────────────────────
# JSON envelopes: {status, data, timestamp} / {status, error, timestamp}
from typing import Any, Dict

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from errors import HTTP_STATUS
from Store.utils import now_iso


def send_json(data: Any, status: int = 200) -> JSONResponse:
    return JSONResponse(
        jsonable_encoder({"status": status, "data": data, "timestamp": now_iso()}),
        status_code=status,
    )


def send_error(message: str, status: int = 400) -> JSONResponse:
    return JSONResponse(
        {"status": status, "error": message, "timestamp": now_iso()},
        status_code=status,
    )


def send_result(result: Dict[str, Any], status: int = 200, error_status: int = 0) -> JSONResponse:
    """Tagged service result → envelope. `error_status` forces one status for all failures."""
    if result.get("success"):
        return send_json(result, status)
    return send_error(result["error"], error_status or HTTP_STATUS.get(result.get("code"), 400))
