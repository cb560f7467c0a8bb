"""Class index - concrete implementations of base classes, found at build time.

This package provides tools for:
- Reading access flags and superclass names from compiled class headers
- Collecting headers from a module's classes and its dependency jars
- Reusing indices already embedded in dependency jars
- Resolving which concrete classes extend each configured base
- Writing the index only when its content changed

Usage:
    python -m classindex build --classes-dir target/classes -a dep.jar -b com.acme.Service
    python -m classindex query --base com.acme.Service
    python -m classindex status
"""

__version__ = "1.0.0"
