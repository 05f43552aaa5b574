from sqlalchemy import Column, String, Date, DateTime, Float, ForeignKey, Index, func, text
from sqlalchemy.orm import relationship
from site_allocation.core.db import Base


class Allocation(Base):
    __tablename__ = "allocations"
    id = Column(String, primary_key=True, index=True)
    site_id = Column(String, ForeignKey("sites.id"), nullable=False, index=True)
    engineer_id = Column(String, ForeignKey("engineers.id"), nullable=True, index=True)
    site_name = Column(String, nullable=True)
    address = Column(String, nullable=True)
    region = Column(String, nullable=True)
    priority = Column(String, nullable=False, default="medium")
    status = Column(String, nullable=False, default="unallocated")
    scheduled_date = Column(Date, nullable=True)
    distance = Column(Float, nullable=True)  # advisory, from the location service
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    site = relationship("Site", back_populates="allocations")
    engineer = relationship("Engineer", back_populates="allocations")

    # At most one allocated or in-progress allocation per site
    __table_args__ = (
        Index(
            "uq_allocations_active_site",
            "site_id",
            unique=True,
            postgresql_where=text("status IN ('allocated', 'in-progress')"),
            sqlite_where=text("status IN ('allocated', 'in-progress')"),
        ),
    )
