"""
Core package: settings, logging, security primitives and the error taxonomy
shared by every service.
"""
