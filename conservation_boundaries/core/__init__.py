"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Unit conversions, default tolerances, closed vocabularies
- exceptions: Custom exception hierarchy
- registry: Site identity reference data
"""
