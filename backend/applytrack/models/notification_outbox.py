from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func

from applytrack.core.base import Base


class NotificationOutbox(Base):
    """
    Email intent written in the same transaction as the job change that caused it.
    Delivered asynchronously by tasks/notifications.py.
    """

    __tablename__ = "notification_outbox"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Plain reference: the row outlives a deleted application.
    application_id = Column(String(36), nullable=True)

    occasion = Column(String(32), nullable=False)  # created | status_changed
    to_email = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    body_text = Column(Text, nullable=False)
    body_html = Column(Text, nullable=True)

    # pending | sent | failed | skipped
    status = Column(String(16), nullable=False, default="pending", server_default="pending", index=True)
    attempts = Column(Integer, nullable=False, default=0, server_default="0")
    last_error = Column(String(500), nullable=True)
    provider_message_id = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
