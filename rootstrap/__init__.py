"""rootstrap — provisionamento e auto-reparo de um ambiente Unix em sandbox."""

__version__ = "1.8.1"
