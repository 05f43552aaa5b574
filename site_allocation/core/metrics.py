import time
import uuid
import logging
from functools import wraps
from typing import Optional

from site_allocation.core.prometheus_metrics import prometheus_collector
from site_allocation.core.retry import NonRetryableError

logger = logging.getLogger(__name__)


def track_performance(service_name: Optional[str] = None):
    """
    Decorator to automatically track command performance

    Usage:
    @track_performance(service_name="AllocationOrchestrator")
    async def request_allocation(self, engineer_id, site_id):
        # method implementation

    Outcomes are labelled success, rejected (a NonRetryableError such as an
    eligibility rejection) or error (everything else).
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            correlation_id = str(uuid.uuid4())

            actual_service_name = service_name or (args[0].__class__.__name__ if args else "Unknown")
            method_name = func.__name__

            operator_id = getattr(args[0], 'operator_id', None) if args else None

            start_time = time.perf_counter()
            status = "error"

            try:
                result = await func(*args, **kwargs)
                status = "success"
                return result

            except NonRetryableError as e:
                status = "rejected"
                logger.info(f"Rejected {actual_service_name}.{method_name}: {e}")
                raise

            except Exception as e:
                logger.error(f"Error in {actual_service_name}.{method_name}: {e}")
                raise

            finally:
                duration_seconds = time.perf_counter() - start_time

                prometheus_collector.record_command(
                    service_name=actual_service_name,
                    method_name=method_name,
                    duration_seconds=duration_seconds,
                    status=status,
                )

                logger.info(
                    f"Method executed: {actual_service_name}.{method_name}",
                    extra={
                        'correlation_id': correlation_id,
                        'service_name': actual_service_name,
                        'method_name': method_name,
                        'duration_ms': duration_seconds * 1000,
                        'status': status,
                        'operator_id': operator_id
                    }
                )

        return wrapper
    return decorator
