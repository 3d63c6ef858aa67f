"""
Domain layer - Core business models.

This module contains the core domain models, isolated from external
concerns like databases and frameworks.
"""
