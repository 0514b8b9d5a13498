"""
Tests package for the managed serviceaccount agent.

Contains:
- unit/: Unit tests run against in-memory Kubernetes API fakes
"""
