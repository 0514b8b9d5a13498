"""
Managed ServiceAccount agent - Kopf-based token controller for managed clusters.

This agent runs against a managed ("spoke") cluster and serves the
ManagedServiceAccount resources declared for it on the hub cluster:
- Ensures a ServiceAccount exists on the spoke for every request
- Issues bounded-lifetime tokens through the TokenRequest API
- Rotates tokens well before they expire
- Publishes token, expiry and CA bundle back onto the hub status
"""

__version__ = "0.1.0"
