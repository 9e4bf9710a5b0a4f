"""
Application Layer Package

Use cases orchestrating the domain services against the repository and
gateway interfaces, plus the DTOs exposed to the presentation layer.
"""
