from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class FrameRow(Base):
    __tablename__ = "frame"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    create_time = Column(DateTime)
    data = Column(JSON, nullable=False)  # The full frame record: image, size, areas, areasOnTop


class PhotoSessionRow(Base):
    __tablename__ = "photo_session"

    id = Column(String, primary_key=True)
    frame_id = Column(String, index=True)
    create_time = Column(DateTime)
    data = Column(JSON, nullable=False)  # photos (data URLs), finalImage
