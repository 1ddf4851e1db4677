"""Organization model"""

from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship
from forpharma.models.base import BaseModel


class Organization(BaseModel):
    """
    Organization model representing a customer company.
    Each organization owns exactly one tenant schema once provisioned;
    schema_name is assigned at provisioning time and never changes.
    """

    __tablename__ = "organizations"

    name = Column(String(255), unique=True, nullable=False)
    schema_name = Column(String(63), unique=True, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    users = relationship("User", back_populates="organization")

    def __repr__(self):
        return f"<Organization(id={self.id}, name={self.name}, schema_name={self.schema_name})>"
