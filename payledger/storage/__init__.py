"""Persistence layer: engine setup, ORM models and the transaction wrapper."""
