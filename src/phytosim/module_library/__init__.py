"""
Module Library
==============
Leaf physiology and canopy modules that can be composed into a dynamical system.

Modules are looked up by name through a :class:`ModuleRegistry`;
``standard_library()`` returns one populated with every module shipped here.

Note: These modules are pure functions of their inputs and must not keep any
state between calls.
"""
