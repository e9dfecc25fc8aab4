"""
Tenant ownership for OKR tables.

Membership tables (workspaces, teams, role assignments) and all OKR content
derive from ``TenantModel``. The ``tenant_id`` column is NOT NULL here:
tenantless rows cannot be created through these models, so the scoped
lookups in ``services/helpers/scoped_queries.py`` never have to special-case
them. Tenants, users and the audit log live outside this base because a
platform superuser and platform-scope audit rows carry no tenant.
"""

from okr_api.models import db


class TenantModel(db.Model):
    __abstract__ = True

    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    @classmethod
    def query_for_tenant(cls, tenant_id: int):
        """All rows of this table owned by ``tenant_id``; list endpoints start here."""
        if tenant_id is None:
            raise ValueError(f"{cls.__name__}.query_for_tenant needs a tenant id")
        return cls.query.filter(cls.tenant_id == tenant_id)
