"""
Gateway adapter, configuration and status server.
"""
