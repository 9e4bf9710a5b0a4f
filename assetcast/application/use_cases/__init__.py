"""
Application Use Cases Package

The forecast scheduler cycle, history sync and migration, forecast
ingestion, prediction display, pipeline management and system endpoints.
"""
