"""
Command-line interface for reenact.
"""
