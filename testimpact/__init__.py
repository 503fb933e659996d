"""testimpact - change impact detection for Python test suites."""

__version__ = "0.1.0"
