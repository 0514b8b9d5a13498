"""
Handlers package - Contains all Kopf event handlers of the agent.

- managed_serviceaccount.py: ManagedServiceAccount token issuance and rotation
"""
