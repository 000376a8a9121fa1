"""Core domain logic for dialysis patient tracking.

This package contains the clinical calculations and subscription entitlement
rules, isolated from the UI and the REST backend for easy testing and reasoning.
"""
