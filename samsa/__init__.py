"""Kafka/Redpanda wire protocol encoding, parsing and broker connections."""

__version__ = "0.1.8"