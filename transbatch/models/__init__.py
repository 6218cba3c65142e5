"""Typed datatypes shared across transbatch modules."""
