# ============================================================================
# MODULE CONTEXT - API RESPONSE ENVELOPE
# ============================================================================
# STATUS: Shared HTTP helpers
# PURPOSE: Uniform {success, data, message, meta} envelope for every HTTP response
# EXPORTS: create_response, json_response, error_response, rate_limited_response, client_address
# DEPENDENCIES: azure.functions, json
# PATTERNS: Response envelope
# ============================================================================

"""
API Response Envelope

Every route answers with:

    {
        "success": bool,
        "data": ...,
        "message": str,
        "meta": {"timestamp": ISO-8601, ...}
    }
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import azure.functions as func


def _to_jsonable(data: Any) -> Any:
    """Dump pydantic models (and lists of them) to JSON-safe structures."""
    if hasattr(data, 'model_dump'):
        return data.model_dump(mode='json')
    if isinstance(data, list):
        return [_to_jsonable(item) for item in data]
    if isinstance(data, dict):
        return {key: _to_jsonable(value) for key, value in data.items()}
    return data


def create_response(
    success: bool,
    data: Any = None,
    message: str = "",
    meta: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Build the response envelope.

    Args:
        success: Whether the operation succeeded
        data: Payload (dicts, lists or pydantic models)
        message: Human readable summary
        meta: Extra metadata merged after the timestamp

    Returns:
        Envelope dict
    """
    return {
        "success": success,
        "data": _to_jsonable(data),
        "message": message,
        "meta": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **_to_jsonable(meta or {})
        }
    }


def json_response(
    data: Any = None,
    message: str = "",
    meta: Optional[Dict[str, Any]] = None,
    status_code: int = 200
) -> func.HttpResponse:
    """Successful envelope as an HttpResponse."""
    body = create_response(True, data, message, meta)
    return func.HttpResponse(
        body=json.dumps(body, indent=2, default=str),
        status_code=status_code,
        mimetype="application/json"
    )


def error_response(
    message: str,
    status_code: int = 400,
    data: Any = None,
    meta: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None
) -> func.HttpResponse:
    """Failed envelope as an HttpResponse."""
    body = create_response(False, data, message, meta)
    return func.HttpResponse(
        body=json.dumps(body, indent=2, default=str),
        status_code=status_code,
        mimetype="application/json",
        headers=headers
    )


def rate_limited_response(retry_after_seconds: int) -> func.HttpResponse:
    return error_response(
        "Too many requests, please try again later",
        status_code=429,
        meta={"retry_after_seconds": retry_after_seconds},
        headers={"Retry-After": str(retry_after_seconds)}
    )


def client_address(req: func.HttpRequest) -> str:
    """Caller address from forwarding headers, 'unknown' when absent."""
    forwarded = req.headers.get("x-forwarded-for") or req.headers.get("x-client-ip") or ""
    address = forwarded.split(",")[0].strip()
    # Azure front ends append the source port
    if address.count(":") == 1:
        address = address.split(":")[0]
    return address or "unknown"
