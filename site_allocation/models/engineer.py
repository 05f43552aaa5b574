from sqlalchemy import Column, String, DateTime, func
from sqlalchemy.orm import relationship
from site_allocation.core.db import Base


class Engineer(Base):
    __tablename__ = "engineers"
    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    vehicle = Column(String, nullable=True)  # free-text, e.g. 'Toyota Hilux'
    status = Column(String, nullable=False, default="available")  # 'available' | 'unavailable'
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    allocations = relationship("Allocation", back_populates="engineer")
