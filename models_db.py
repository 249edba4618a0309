from sqlalchemy import Column, Integer, String, Float, Date, DateTime, func

from db_config import Base


class EventDB(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # Single-day events
    event_date = Column(Date, nullable=True, index=True)
    event_time = Column(String(100), nullable=True)   # free text, e.g. "3pm - 5pm"
    # Multi-day events
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True, index=True)

    event_type = Column(String(255), nullable=False, index=True)
    address = Column(String(255), nullable=False)
    address2 = Column(String(255), nullable=True)
    city = Column(String(128), nullable=False)
    state = Column(String(64), nullable=False)
    zip = Column(String(16), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<EventDB {self.id} {self.event_type!r} {self.city}, {self.state}>"
