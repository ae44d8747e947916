"""
Multi-Tenant Task Board

Projects and tasks for many tenants on one deployment, with tenant
isolation, role-based access, plan quotas and an append-only audit trail.
"""

__version__ = "1.0.0"
