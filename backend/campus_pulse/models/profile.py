"""Profile model: display names for faculty and students."""

from sqlalchemy import Column, Integer, String

from campus_pulse.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
