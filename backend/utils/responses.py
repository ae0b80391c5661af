from typing import Optional
from fastapi.responses import JSONResponse

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

def no_store_json(data, status_code: int = 200):
    """Token-bearing responses must never be cached by intermediaries."""
    return JSONResponse(content=data, status_code=status_code, headers=NO_STORE_HEADERS)

def error_json(detail: str, status_code: int, headers: Optional[dict] = None):
    return JSONResponse(content={"detail": detail}, status_code=status_code, headers=headers)
