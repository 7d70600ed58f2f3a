"""
Base Module - Abstract base class for all tracking engine modules

This module provides the foundation for tracking modules with:
- Standardized execution interface
- Error handling and timing
- Result standardization
- Warning collection
"""

from abc import ABC
from typing import Dict, Any, Optional, List, Callable
from dataclasses import dataclass
from datetime import datetime

from tactrack.errors import TrackingError
from tactrack.utils.logger import get_logger

@dataclass
class ModuleResult:
    """Result object returned by module execution"""
    operation: str
    module_name: str
    implementation: str
    success: bool
    execution_time: float
    data: Any = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    warnings: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary format"""
        return {
            "operation": self.operation,
            "module_name": self.module_name,
            "implementation": self.implementation,
            "success": self.success,
            "execution_time": self.execution_time,
            "data": self.data,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "warnings": self.warnings
        }

class BaseModule(ABC):
    """Abstract base class for tracking engine modules"""

    def __init__(self, module_name: str, implementation: str):
        self.module_name = module_name
        self.implementation = implementation
        self.logger = get_logger(f"modules.{module_name}.{implementation}")
        self._collected_warnings: Optional[List[str]] = None

    def execute(self, operation: str, handler: Callable[..., Any], *args, **kwargs) -> ModuleResult:
        """Run an operation, converting tracking errors into a failed result"""

        start_time = datetime.now()
        warnings: List[str] = []
        self._collected_warnings = warnings

        try:
            self.logger.debug(f"Starting {self.module_name}.{operation}")

            result_data = handler(*args, **kwargs)

            execution_time = (datetime.now() - start_time).total_seconds()

            return ModuleResult(
                operation=operation,
                module_name=self.module_name,
                implementation=self.implementation,
                success=True,
                execution_time=execution_time,
                data=result_data,
                warnings=warnings or None
            )

        except TrackingError as e:
            execution_time = (datetime.now() - start_time).total_seconds()
            self.logger.error(f"Module {self.module_name}.{operation} failed: {e}")

            return ModuleResult(
                operation=operation,
                module_name=self.module_name,
                implementation=self.implementation,
                success=False,
                execution_time=execution_time,
                error_code=e.code,
                error_message=str(e),
                warnings=warnings or None
            )

        finally:
            self._collected_warnings = None

    def _log_warning(self, message: str, warnings_list: List[str] = None) -> None:
        """Helper method to log warnings"""

        self.logger.warning(message)
        if warnings_list is not None:
            warnings_list.append(message)
        elif self._collected_warnings is not None:
            self._collected_warnings.append(message)
