"""Backing service descriptor."""

import uuid
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def generate_instance_name(service: str) -> str:
    return f"{service}-{uuid.uuid4().hex[:8]}"


class ServiceDescriptor(BaseModel):
    """A marketplace service instance to provision in the target space."""

    service: str = Field(..., description="Service offering label (e.g. cleardb)")
    plan: str = Field(..., description="Service plan name (e.g. spark)")
    instance_name: Optional[str] = Field(
        None, description="Instance name; generated from the offering when blank"
    )

    @field_validator("service", "plan")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("instance_name")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    def resolve_instance_name(self) -> str:
        """Return the configured instance name, generating and keeping one if unset."""
        if self.instance_name is None:
            self.instance_name = generate_instance_name(self.service)
        return self.instance_name
