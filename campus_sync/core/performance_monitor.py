# campus_sync/core/performance_monitor.py
import time
import logging
from functools import wraps
from typing import Callable, Any, Optional

from .config import settings

logger = logging.getLogger(__name__)


def monitor_performance(operation_name: Optional[str] = None, threshold: Optional[float] = None):
    """Decorator to time an async operation and log slow or failed runs"""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            start_time = time.monotonic()
            op_name = operation_name or f"{func.__module__}.{func.__name__}"
            limit = threshold if threshold is not None else settings.slow_request_threshold

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                execution_time = time.monotonic() - start_time
                request_metrics.record_operation(op_name, execution_time, success=False)
                logger.error(f"Operation failed: {op_name} after {execution_time:.2f}s - {str(e)}")
                raise

            execution_time = time.monotonic() - start_time
            request_metrics.record_operation(op_name, execution_time)
            if execution_time > limit:
                logger.warning(f"Slow operation detected: {op_name} took {execution_time:.2f}s")
            else:
                logger.debug(f"Operation completed: {op_name} in {execution_time:.2f}s")
            return result

        return async_wrapper

    return decorator


class RequestMetrics:
    """Simple per-operation timing collector"""
    def __init__(self):
        self.metrics = {}

    def record_operation(self, operation: str, duration: float, success: bool = True):
        if operation not in self.metrics:
            self.metrics[operation] = {
                'count': 0,
                'total_time': 0.0,
                'failures': 0,
                'avg_time': 0.0
            }

        entry = self.metrics[operation]
        entry['count'] += 1
        entry['total_time'] += duration
        if not success:
            entry['failures'] += 1
        entry['avg_time'] = entry['total_time'] / entry['count']

    def get_metrics(self) -> dict:
        return {name: dict(values) for name, values in self.metrics.items()}

    def reset(self):
        self.metrics = {}


# Global metrics instance
request_metrics = RequestMetrics()
