"""Shared base utilities for data models."""
from uuid import uuid4


def generate_id() -> str:
    """Generate a unique string ID."""
    return str(uuid4())
