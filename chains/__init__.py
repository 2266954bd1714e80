"""
chains/ - JSON-RPC chain access.
"""
