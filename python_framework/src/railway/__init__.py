"""
Result-based error handling shared by the crawler adapters.

Adapters catch exceptions at their edge and hand back a Result:

    from railway import ErrorCode, Result

    def read_anchor(path: Path) -> Result[bytes]:
        return Result.from_computation(path.read_bytes, ErrorCode.NOT_FOUND, f"{path} unreadable")
"""

from railway.result import Result, Success, Failure
from railway.failure import ErrorCode, FailureDescription
from railway.assertions import ResultAssertions

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ResultAssertions",
]

__version__ = "1.0.0"
