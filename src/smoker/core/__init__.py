"""Core components for the smoker harness.

This module contains the foundational components including AWS client
management, configuration handling, the error taxonomy, immutable
configuration views and polling.
"""
