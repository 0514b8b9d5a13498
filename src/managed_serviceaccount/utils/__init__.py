"""
Utils package - Utility modules for the managed serviceaccount agent.

Contains helper modules for:
- Hub and managed cluster client configuration
- ServiceAccount and token operations on the managed cluster
- Status publishing on the hub
- Per-key locking and handler logging
"""
