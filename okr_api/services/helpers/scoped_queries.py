"""
Tenant-scoped query helpers.

Every get-by-id on tenant data MUST go through these helpers instead of
Model.query.get(pk) or db.session.get(Model, pk). Direct lookups bypass
tenant isolation.

Usage:
    objective = get_scoped(Objective, objective_id, tenant_id=tenant_id)
    cycle = get_scoped_or_none(Cycle, cycle_id, tenant_id=tenant_id)

The single exception is platform scope: a superuser reading across tenants
calls ``get_scoped(..., any_tenant=True)`` explicitly, which keeps such
lookups greppable.
"""

import logging

from sqlalchemy import select

from okr_api.core.exceptions import NotFoundError
from okr_api.models import db

logger = logging.getLogger(__name__)


def get_scoped(model, pk: int, *, tenant_id: int | None = None, any_tenant: bool = False):
    """Fetch a single entity by PK with a mandatory tenant filter.

    Cross-tenant access is indistinguishable from a missing record: both
    raise NotFoundError → HTTP 404.

    Raises:
        ValueError: If neither tenant_id nor any_tenant is given, or the
                    model has no tenant_id column.
        NotFoundError: If the entity does not exist OR belongs to another tenant.
    """
    if tenant_id is None and not any_tenant:
        raise ValueError(
            f"{model.__name__} id={pk} requires a tenant_id scope. "
            "Unscoped lookups are forbidden — they bypass tenant isolation."
        )
    if not hasattr(model, "tenant_id"):
        raise ValueError(f"{model.__name__} has no tenant_id column; refusing scoped lookup")

    stmt = select(model).where(model.id == pk)
    if tenant_id is not None:
        stmt = stmt.where(model.tenant_id == tenant_id)
    else:
        # Platform scope still never serves rows without a tenant.
        stmt = stmt.where(model.tenant_id.isnot(None))

    result = db.session.execute(stmt).scalar_one_or_none()
    if result is None:
        logger.debug("get_scoped: %s id=%s not found in tenant %s", model.__name__, pk, tenant_id)
        raise NotFoundError(resource=model.__name__, resource_id=pk)
    return result


def get_scoped_or_none(model, pk: int | None, *, tenant_id: int | None = None, any_tenant: bool = False):
    """Same as get_scoped but returns None instead of raising NotFoundError."""
    if pk is None:
        return None
    try:
        return get_scoped(model, pk, tenant_id=tenant_id, any_tenant=any_tenant)
    except NotFoundError:
        return None
