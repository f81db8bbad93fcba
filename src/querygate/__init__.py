"""QueryGate - permission-aware query compiler for schema-driven collections."""

__version__ = "0.1.0"
