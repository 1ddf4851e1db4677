"""User model"""

from sqlalchemy import Boolean, Column, String, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from forpharma.models.base import BaseModel


class User(BaseModel):
    """
    Login credential stored in the control plane.
    Points at the organization whose tenant schema holds the user's data.
    """

    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        String(50), default="MEDICAL_REPRESENTATIVE", nullable=False
    )  # SYSTEM_ADMINISTRATOR, SALES_MANAGER, MEDICAL_REPRESENTATIVE
    organization_id = Column(
        Uuid(as_uuid=True), ForeignKey("organizations.id"), nullable=True, index=True
    )
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    organization = relationship("Organization", back_populates="users")

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
