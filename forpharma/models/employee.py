"""Employee model (tenant schema)"""

from sqlalchemy import Boolean, Column, ForeignKey, String, Uuid
from forpharma.models.base import TenantModel


class Employee(TenantModel):
    """
    Tenant-local employee record.
    Matched to the control-plane User by email during tenant resolution.
    """

    __tablename__ = "employees"

    organization_id = Column(Uuid(as_uuid=True), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(30), nullable=True)
    role = Column(String(50), nullable=False)
    employee_code = Column(String(50), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    reporting_manager_id = Column(
        Uuid(as_uuid=True), ForeignKey("employees.id"), nullable=True
    )
    profile_pic = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Employee(id={self.id}, email={self.email}, role={self.role})>"
