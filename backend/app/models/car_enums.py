"""
Car listing enumerations.
"""

import enum


class CarCategory(str, enum.Enum):
    TAXI = "TAXI"
    PRIVATE = "PRIVATE"


class Transmission(str, enum.Enum):
    MANUAL = "MANUAL"
    AUTOMATIC = "AUTOMATIC"


class FuelType(str, enum.Enum):
    PETROL = "PETROL"
    DIESEL = "DIESEL"
    CNG = "CNG"
    ELECTRIC = "ELECTRIC"


class RateType(str, enum.Enum):
    """Rental billing period."""
    TWELVE_HOURS = "12HR"
    TWENTY_FOUR_HOURS = "24HR"
