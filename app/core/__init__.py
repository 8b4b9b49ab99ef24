"""
Core Application - Infrastructure & Base Classes

Generic, reusable building blocks shared by the domain apps. No chat or
account logic lives here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Views (import from core.views):
    - health_check: Liveness/readiness endpoint

Note:
    Models are NOT imported here to avoid AppRegistryNotReady errors.
    Import them directly from their modules.
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
]
