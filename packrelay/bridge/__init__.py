"""Bridges between packrelay and remote server-management services.

Modules
-------
exaroton
    ``ExarotonClient`` / ``ExarotonServer`` — resolves a server by name and
    exposes its config files and console to the Reconciler.
"""
