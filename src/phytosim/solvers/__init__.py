"""
Solvers
=======
Integration strategies for a ``DynamicalSystem`` and the factory that builds
them by name.
"""
