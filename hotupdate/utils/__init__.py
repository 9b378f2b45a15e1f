"""
Utility modules for the hot update synchronizer.
"""
