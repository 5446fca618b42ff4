from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(status_code: int, data: Any = None, message: str = "Success") -> JSONResponse:
    """Every response body uses the same envelope: statusCode, success, data, message."""
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "success": status_code < 400,
            "data": jsonable_encoder(data),
            "message": message,
        },
    )
