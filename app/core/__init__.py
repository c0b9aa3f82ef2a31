"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps (contracts, payments,
notifications):

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)
    - VersionedModel: BaseModel plus optimistic-locking version counter

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError and the domain-neutral error taxonomy

Helpers (import from core.helpers):
    - add_months, quantize_money, hash_bytes, secrets_match

Note:
    Django models and model mixins are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

from .exceptions import (
    AlreadyAppliedError,
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    PrerequisiteMissingError,
    ValidationError,
)
from .helpers import add_months, hash_bytes, quantize_money, secrets_match
from .services import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "ConflictError",
    "AlreadyAppliedError",
    "PrerequisiteMissingError",
    "ExternalServiceError",
    "add_months",
    "hash_bytes",
    "quantize_money",
    "secrets_match",
]
