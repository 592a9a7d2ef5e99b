"""
Core Application - shared infrastructure for the marketplace apps.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Result wrapper for background handlers

Exceptions (import from core.exceptions):
    - BaseApplicationError and its HTTP-mapped subclasses

Helpers (import from core.helpers):
    - generate_reference, generate_referral_code, haversine_km

Views (import from core.views):
    - error_response: Domain exception -> DRF Response
    - health_check: Infrastructure probe

Note:
    Models and mixins are NOT imported here to avoid AppRegistryNotReady
    errors. Import them directly from their modules.
"""

from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .services import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "ConflictError",
    "ExternalServiceError",
]
