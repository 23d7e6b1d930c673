from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from app.database import Base
from app.models.types import generate_id


class Company(Base):
    __tablename__ = "companies"

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String, index=True, nullable=False)
    contact_name = Column(String, nullable=True)
    contact_email = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
