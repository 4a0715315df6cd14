"""Utility modules for the client core."""

from osclient.utils.json_serializers import json_serializer

__all__ = ["json_serializer"]
