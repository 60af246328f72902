"""Dose accumulation and forecast engine.

This package contains the computational core and domain models,
isolated from storage and transport for easy testing and reasoning.
"""
