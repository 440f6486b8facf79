from sqlalchemy import Column, BigInteger, String, Text, Enum, DateTime, Index
from sqlalchemy.dialects.postgresql import JSONB, UUID
from datetime import datetime, timezone
import uuid
from models.base import Base, DataType, PostStatus


def _utcnow():
    return datetime.now(timezone.utc)


class Post(Base):
    """
    Generated blog post for one month of one dataset.

    Design:
    - One post per (month, data_type); regeneration updates it in place
    - ``generation_metadata`` keeps the generation service's response metadata
    """
    __tablename__ = "posts"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    uuid = Column(UUID(as_uuid=True), default=uuid.uuid4, unique=True, nullable=False)

    title = Column(String(500), nullable=False)
    slug = Column(String(500), nullable=False, index=True)
    content = Column(Text, nullable=False)
    excerpt = Column(Text, nullable=True)
    tags = Column(JSONB, nullable=True)
    highlights = Column(JSONB, nullable=True)
    generation_metadata = Column(JSONB, nullable=True)

    month = Column(String(7), nullable=False)
    data_type = Column(Enum(DataType), nullable=False)
    status = Column(Enum(PostStatus), default=PostStatus.PUBLISHED, nullable=False)

    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    modified_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_posts_month_data_type", "month", "data_type", unique=True),
    )
