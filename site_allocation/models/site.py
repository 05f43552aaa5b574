from sqlalchemy import Column, String, DateTime, func
from sqlalchemy.orm import relationship
from site_allocation.core.db import Base


class Site(Base):
    __tablename__ = "sites"
    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    region = Column(String, nullable=True)
    address = Column(String, nullable=True)
    priority = Column(String, nullable=False, default="medium")  # 'low' | 'medium' | 'high'
    type = Column(String, nullable=True)
    contact_name = Column(String, nullable=True)
    contact_phone = Column(String, nullable=True)
    contact_email = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    allocations = relationship("Allocation", back_populates="site")
