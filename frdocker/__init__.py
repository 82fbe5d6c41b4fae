"""Docker monitoring and fault localization for microservice systems."""

__version__ = "0.1.0"