"""
Simulation Framework
====================
Quantity stores, modules and the dynamical system that composes them.

Note: This package has no knowledge of any particular solver; integrators
only use ``DynamicalSystem.get_differential`` and ``DynamicalSystem.snapshot``.
"""
