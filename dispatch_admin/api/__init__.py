"""
HTTP API for the dispatch admin backend
"""
