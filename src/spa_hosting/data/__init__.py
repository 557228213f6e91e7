"""Persistence layer for project metadata."""
