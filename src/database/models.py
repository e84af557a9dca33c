from sqlalchemy import Column, String, Text, Integer, DateTime, JSON, func
from .database import Base

class EntityRecord(Base):
    __tablename__ = "entities"

    id = Column(String, primary_key=True)
    kind = Column(String, nullable=False, default="unit")
    name = Column(String, nullable=False, default="unnamed")
    digest = Column(String(64), nullable=False)
    feature_vector = Column(JSON, nullable=False)
    summary = Column(String, nullable=True)
    harmonics = Column(JSON, nullable=False, default=list)
    pattern = Column(String, nullable=True)
    relations = Column(JSON, nullable=False, default=list)
    lineage = Column(JSON, nullable=False, default=list)
    # "metadata" is reserved on declarative classes
    entity_metadata = Column("metadata", JSON, nullable=False, default=dict)
    occurrences = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_seen = Column(DateTime(timezone=True), server_default=func.now())
    source_text = Column(Text, nullable=True)

    def __repr__(self):
        return f"<EntityRecord(id={self.id}, name='{self.name}')>"
