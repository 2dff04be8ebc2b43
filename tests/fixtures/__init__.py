"""Test fixtures for the scheduling components.

This package provides reusable test fixtures:
- events: Factories for events, attendees and storage mutation records
- services: In-memory implementations of the external collaborators
"""
