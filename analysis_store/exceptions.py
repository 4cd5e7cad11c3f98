from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from typing import Any


class PersistError(Exception):
    """Raised by snapshot repositories when a snapshot cannot be read or written."""

    def __init__(self, store_name: str, message: str):
        super().__init__(f"Snapshot '{store_name}': {message}")
        self.store_name = store_name
        self.message = message


def create_error_response(error_message: str, status_code: int = 400) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message
    }

def create_success_response(data: Any) -> dict:
    """Create a standardized success response"""
    return {
        "success": True,
        "data": data,
        "error": None
    }

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail, exc.status_code)
    )
