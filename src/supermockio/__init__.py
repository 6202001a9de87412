"""
SuperMockio

Mock HTTP APIs generated from OpenAPI documents: examples are taken from the
document, synthesized from schemas or generated with AI, then served back to
matching requests.
"""

__version__ = '1.0.0'
