from .executor import Executor
from .retry import RetryPolicy, call_with_retry

__all__ = ["Executor", "RetryPolicy", "call_with_retry"]
