"""
Core domain logic.

This module is framework-agnostic - it doesn't import FastAPI, the
Google Cloud SDK or Pillow. Object-key rules and catalog validation can
be tested in isolation.
"""
