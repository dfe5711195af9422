"""
Phase-plane analysis module.

Provides vector fields and fixed-point detection for phase-portrait views.
"""

from .vector_field import VectorField, vector_field, has_converged

__all__ = ['VectorField', 'vector_field', 'has_converged']
