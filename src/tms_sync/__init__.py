"""Synchronise local test scripts and plans with a Test Management System."""

__version__ = "1.0.0"
