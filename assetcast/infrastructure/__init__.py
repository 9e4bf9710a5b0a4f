"""
Infrastructure Layer

Adapters binding the domain ports to MongoDB, GridFS, Redis, RabbitMQ,
Vertex AI, BigQuery and Celery.
"""
