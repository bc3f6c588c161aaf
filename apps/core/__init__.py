"""
Core app: tenants, users, team membership, permissions and audit logging.
"""
