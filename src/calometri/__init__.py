"""calometri: daily weight and calorie logging with TDEE estimation."""

__version__ = "0.1.0"
