import json
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from arm_poller.errors import FatalRequestError
from arm_poller.models import ApiResponse, ErrorDetail, ErrorResponse

ModelT = TypeVar("ModelT", bound=BaseModel)


def decode_json(response: ApiResponse) -> Optional[Any]:
    """Decodes the body, returning None when it is absent and {} for an empty object"""
    if response.body is None or not response.body.strip():
        return None
    try:
        return json.loads(response.body)
    except ValueError as e:
        raise FatalRequestError(
            response.status, f"response body is not valid JSON: {e}"
        ) from e


def decode_model(response: ApiResponse, model: Type[ModelT]) -> Optional[ModelT]:
    data = decode_json(response)
    if data is None:
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise FatalRequestError(
            response.status, f"decoding {model.__name__}: {e}"
        ) from e


def decode_error(response: ApiResponse) -> ErrorDetail:
    """Extracts the ARM error payload, falling back to the raw body text"""
    fallback = ErrorDetail(code=f"HTTP{response.status}", message=response.text or None)
    try:
        data = decode_json(response)
    except FatalRequestError:
        return fallback
    if not isinstance(data, dict):
        return fallback
    try:
        if "error" in data:
            return ErrorResponse.model_validate(data).error
        if "code" in data or "message" in data:
            return ErrorDetail.model_validate(data)
    except ValidationError:
        return fallback
    return fallback


def provisioning_state(payload: Optional[Any]) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    properties = payload.get("properties")
    if not isinstance(properties, dict):
        return None
    return properties.get("provisioningState")
