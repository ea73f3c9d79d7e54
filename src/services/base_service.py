"""
Base service layer shared by resource services
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional
from dataclasses import dataclass

from services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

@dataclass
class ServiceResult:
    """Result from service operation"""
    success: bool
    data: Optional[List[Any]] = None
    count: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None
    page_info: Optional[Dict[str, Any]] = None

class BaseService:
    """Translates store exceptions into ServiceResult objects"""

    def __init__(self, resource_name: str):
        self.resource_name = resource_name
        logger.info(f"Service initialized for resource: {resource_name}")

    async def _run(self, operation: str, call: Callable[[], Awaitable[Any]]) -> ServiceResult:
        """
        Execute a store call and wrap its outcome

        Args:
            operation: Operation name used in log messages
            call: Zero-argument coroutine factory performing the store call

        Returns:
            ServiceResult carrying the returned record (if any)
        """
        try:
            record = await call()
        except NotFoundError as e:
            logger.info(f"{operation} on {self.resource_name}: {e}")
            return ServiceResult(
                success=False,
                error=str(e),
                error_type="RESOURCE_NOT_FOUND"
            )
        except ConflictError as e:
            logger.warning(f"{operation} on {self.resource_name} rejected: {e}")
            return ServiceResult(
                success=False,
                error=str(e),
                error_type="CONFLICT"
            )
        except Exception as e:
            logger.error(f"{operation} operation failed for {self.resource_name}: {e}", exc_info=True)
            return ServiceResult(
                success=False,
                error=str(e),
                error_type="EXECUTION_ERROR"
            )

        if record is None:
            return ServiceResult(success=True, data=[], count=0)
        return ServiceResult(success=True, data=[record], count=1)
