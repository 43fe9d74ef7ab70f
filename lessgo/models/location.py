from sqlalchemy import Column, Float, String, Text


class LocationColumns:
    """Flattened Location columns shared by users and listings."""

    location_type = Column(String(20), nullable=True)  # NULL = no location set
    location_address = Column(String(255), nullable=True)
    location_city = Column(String(120), nullable=True)
    location_state = Column(String(60), nullable=True)
    location_zip_code = Column(String(20), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    meeting_instructions = Column(Text, nullable=True)
