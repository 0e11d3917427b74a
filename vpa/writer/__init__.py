"""
Output writers and line protocol serialization.
"""
