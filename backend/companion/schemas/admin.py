"""Responses for the development seed/clear tooling."""

from typing import Dict, List

from pydantic import BaseModel


class SeedResponse(BaseModel):
    message: str
    created: List[str]


class ClearResponse(BaseModel):
    message: str
    deleted: Dict[str, int]
