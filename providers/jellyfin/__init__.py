from ._utils import JellyfinError
from .library import JellyfinLibrary

__all__ = ["JellyfinLibrary", "JellyfinError"]
