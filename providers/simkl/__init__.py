from ._common import InvalidTokenError, SimklError
from .client import SimklClient

__all__ = ["SimklClient", "SimklError", "InvalidTokenError"]
