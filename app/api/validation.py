"""
API key validation endpoint
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.config import Settings, get_settings
from app.services.api_key_validator import ApiKeyValidationResult, ApiKeyValidator
from app.utils.logger import log

router = APIRouter(tags=["validation"])


class ApiKeyValidationRequest(BaseModel):
    service: str
    api_key: str
    base_url: Optional[str] = None


class ApiKeyValidationResponse(BaseModel):
    success: bool = True
    service: str
    validation: ApiKeyValidationResult


@router.post("/validate-api-keys", response_model=ApiKeyValidationResponse)
async def validate_api_key(
    request: ApiKeyValidationRequest,
    settings: Settings = Depends(get_settings)
):
    """
    Check a candidate key before it is saved

    Supported services: klaviyo, triple-whale. The key is only used for the
    probe requests and is not stored or logged.
    """
    if not request.api_key:
        raise HTTPException(status_code=400, detail="api_key must not be empty")

    try:
        validator = ApiKeyValidator.for_platform(request.service, request.api_key, request.base_url, settings)
    except ValueError as e:
        log.warning(f"API key validation requested for unsupported service '{request.service}'")
        raise HTTPException(status_code=400, detail=str(e))

    try:
        result = await validator.validate()
    except Exception as e:
        log.error(f"Error validating {request.service} API key: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error during API key validation")

    return ApiKeyValidationResponse(service=request.service.lower(), validation=result)
