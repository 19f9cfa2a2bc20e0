import uuid

import sqlalchemy as sa

from qrsync.db.base import Base


class TransferSession(Base):
    __tablename__ = "transfer_sessions"

    id = sa.Column(sa.UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    status = sa.Column(sa.String(16), nullable=False, server_default="waiting", index=True)
    connection_created = sa.Column(sa.Boolean, nullable=False, server_default=sa.text("false"))

    # [{filename, originalName, size, uploadedAt}] in arrival order
    uploads = sa.Column(sa.JSON, nullable=False, default=list)
    # [{text, sentAt}]
    messages = sa.Column(sa.JSON, nullable=False, default=list)

    created_at = sa.Column(sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
    expires_at = sa.Column(sa.DateTime(timezone=True), nullable=True, index=True)
    updated_at = sa.Column(sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False)
