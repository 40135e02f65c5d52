"""
Scanner analytics test suite

Structure:
- unit/: Unit tests for individual components
- integration/: End-to-end replay through the pipeline
"""
