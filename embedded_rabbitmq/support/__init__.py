"""
Support layer for shared broker utilities.

Provides centralized helpers for process environments, filesystem layout
and free port selection used across config, adapter and pipeline modules.
"""
