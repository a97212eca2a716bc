"""Push-token lifecycle and activity notification core."""

__version__ = "1.0.0"
