"""Response envelope helpers: {success, data?, error?, message?, pagination?}."""
from typing import Any, Dict, Optional


def success_response(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    response: Dict[str, Any] = {"success": True}
    if data is not None:
        response["data"] = data
    if message:
        response["message"] = message
    return response


def error_response(error: str, **extra: Any) -> Dict[str, Any]:
    return {"success": False, "error": error, **extra}
