"""Professionals, clients, subjects and the services professionals offer."""

from typing import Optional

from pydantic import BaseModel, Field


class Professional(BaseModel):
    """Veterinarian offering services."""
    id: str
    name: str
    timezone: Optional[str] = None


class Client(BaseModel):
    """Pet tutor requesting services."""
    id: str
    name: str


class Subject(BaseModel):
    """Pet a booking is made for."""
    id: str
    client_id: str
    name: str
    species: Optional[str] = None


class Service(BaseModel):
    """Service offering. Its duration is what slots are fitted against."""
    id: str
    professional_id: str
    name: str
    price: float = 0.0
    duration_minutes: int = Field(gt=0)
    description: Optional[str] = None
