"""Document model backing the path-keyed realtime store."""
from sqlalchemy import Column, BigInteger, String, DateTime, JSON, Index
from sqlalchemy.sql import func
from ricequote.database import Base


class Document(Base):
    """
    One JSON value stored at a slash-separated path.

    `parent` is the path with its last segment removed so that children of a
    node ("products/p1/grades") can be listed with one indexed query.
    `version` is bumped on every write; transactions compare-and-swap on it.
    """

    __tablename__ = 'documents'

    path = Column(String(512), primary_key=True)
    parent = Column(String(512), nullable=False, default='')
    key = Column(String(255), nullable=False)
    value = Column(JSON, nullable=True)
    version = Column(BigInteger, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('ix_documents_parent', 'parent'),
    )

    def __repr__(self):
        return f"<Document(path='{self.path}', version={self.version})>"
