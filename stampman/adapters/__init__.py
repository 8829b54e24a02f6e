"""Stampman adapters: Django ORM stores and event sinks."""
