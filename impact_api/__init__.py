"""Meteor impact simulator: physics metrics, phase timeline and damage reports."""

__version__ = "1.0.0"
