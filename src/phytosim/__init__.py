"""
phytosim
========
Modular plant-growth simulation: named-quantity modules composed into a
dynamical system and advanced through time by a pluggable integrator.
"""
__version__ = "0.1.0"
