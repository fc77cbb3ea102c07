"""X4A client library"""
from ..errors import ApiError
from .client import X4AClient
from .diagrams import MermaidRenderer

__all__ = ["X4AClient", "MermaidRenderer", "ApiError"]
