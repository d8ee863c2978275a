"""Core evaluation machinery for termopt.

Submodules:

- ``term`` and ``transforms``: the capabilities terms and changes of
  variables implement.
- ``registry`` and ``graph``: variables and the term bindings over them.
- ``engine``: parallel evaluation and gradient / Hessian assembly.
- ``interval``: outward-rounded interval arithmetic.
- ``verification``: finite-difference gradient checks.
- ``errors``: the exception hierarchy.
"""
