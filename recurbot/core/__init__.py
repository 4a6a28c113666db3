"""Core infrastructure for recurbot: configuration, health tracking and clocks."""
