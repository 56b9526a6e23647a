"""
Shared configuration, settings file loading and logging helpers.
"""
