"""
Mocks for external dependencies used during testing.
"""
