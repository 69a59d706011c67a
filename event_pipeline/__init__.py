"""Avro event pipeline: Confluent wire codec, schema registry resolver, Kafka producer and consumer group runner."""

__version__ = "0.1.0"
