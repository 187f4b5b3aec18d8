from rainstats.models.base import Base
from rainstats.models.weather_reading import WeatherReading

__all__ = ["Base", "WeatherReading"]
