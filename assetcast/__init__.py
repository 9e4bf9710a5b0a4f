"""
Assetcast Root Module

Scheduling core for per-asset forecasting pipelines: decides when to train
and run inference for each asset, keeps raw history flowing to the
analytical store and folds produced forecasts back into asset history.

Layer Structure:
- Domain: Core business logic and entities
- Application: Use cases, DTOs and coordination services
- Infrastructure: External systems and services implementations
- Presentation: Controllers and routes for the REST API
- Shared: Cross-cutting concerns and shared utilities
- Main: Composition root, application entry point and configuration
"""
