"""
Command line interface for docchunk.
"""
