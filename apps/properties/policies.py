"""Cancellation policy services.

Hosts attach at most one active cancellation policy to a property. Editing
a policy deactivates the previous one and keeps it as history. Properties
without an active policy fall back to the default moderate policy.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Mapping, Optional

from django.db import IntegrityError, transaction  # type: ignore

from apps.bookings.domain.cancellation import (
    DEFAULT_POLICY,
    PolicyTerms,
    calculate_refund,
    default_templates,
    validate_policy_terms,
)
from shared.domain.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from shared.domain.value_objects import Actor, Money

from .models import CancellationPolicy
from .serializers import CancellationPolicyInputSerializer
from .services import get_property

logger = logging.getLogger(__name__)


def _ensure_owner(property_obj, actor: Actor) -> None:
    if not (property_obj.is_owned_by(actor.user_id) or actor.is_staff):
        raise PermissionDeniedError("Only the property owner can manage cancellation policies")


def get_active_policy(property_id: int) -> Optional[CancellationPolicy]:
    return CancellationPolicy.objects.filter(property_id=property_id, is_active=True).first()


def get_policy_terms(property_id: int) -> PolicyTerms:
    """Terms of the active policy, or the default policy when none is set."""

    policy = get_active_policy(property_id)
    if policy is None:
        return DEFAULT_POLICY
    return policy.to_terms()


def _parse_policy(data: Mapping) -> tuple[PolicyTerms, bool]:
    serializer = CancellationPolicyInputSerializer(data=dict(data))
    if not serializer.is_valid():
        raise ValidationError("Invalid cancellation policy", details=serializer.errors)
    values = serializer.validated_data
    terms = PolicyTerms(
        policy_type=values["policy_type"],
        refund_percentage=values["refund_percentage"],
        days_before_checkin=values["days_before_checkin"],
        description=values.get("description", ""),
    )
    return validate_policy_terms(terms), values["is_active"]


def validate_policy(data: Mapping) -> PolicyTerms:
    """Parse and check a policy payload without saving it."""

    terms, _ = _parse_policy(data)
    return terms


def set_cancellation_policy(property_id: int, actor: Actor, data: Mapping) -> CancellationPolicy:
    """Create the property's policy, replacing the active one."""

    _ensure_owner(get_property(property_id), actor)
    terms, is_active = _parse_policy(data)

    with transaction.atomic():
        # concurrent edits of one property queue on its row
        property_obj = get_property(property_id, lock=True)
        if is_active:
            CancellationPolicy.objects.filter(
                property_id=property_id,
                is_active=True,
            ).update(is_active=False)
        try:
            with transaction.atomic():
                policy = CancellationPolicy.objects.create(
                    property=property_obj,
                    policy_type=terms.policy_type.value,
                    refund_percentage=terms.refund_percentage,
                    days_before_checkin=terms.days_before_checkin,
                    description=terms.description or terms.policy_type.description,
                    is_active=is_active,
                    created_by_id=actor.user_id,
                )
        except IntegrityError as exc:
            raise ConflictError("Another active cancellation policy was set at the same time") from exc

    logger.info(f"Set {terms.policy_type.value} cancellation policy {policy.pk} for property {property_id}")
    return policy


def list_policies(property_id: int, actor: Actor, *, active_only: bool = False) -> list[CancellationPolicy]:
    property_obj = get_property(property_id)
    _ensure_owner(property_obj, actor)
    queryset = CancellationPolicy.objects.filter(property_id=property_id)
    if active_only:
        queryset = queryset.filter(is_active=True)
    return list(queryset.order_by("-created_at", "-pk"))


def deactivate_policy(policy_id: int, actor: Actor) -> CancellationPolicy:
    policy = CancellationPolicy.objects.select_related("property").filter(pk=policy_id).first()
    if policy is None:
        raise NotFoundError(f"Cancellation policy {policy_id} not found")
    _ensure_owner(policy.property, actor)
    if policy.is_active:
        policy.is_active = False
        policy.save(update_fields=["is_active", "updated_at"])
        logger.info(f"Deactivated cancellation policy {policy_id} of property {policy.property_id}")
    return policy


def default_policy_templates() -> list[PolicyTerms]:
    return default_templates()


def quote_refund(property_id: int, total: Decimal, check_in: date, on_date: date) -> Money:
    """Refund a cancellation on ``on_date`` would receive under the current policy."""

    property_obj = get_property(property_id)
    return calculate_refund(
        get_policy_terms(property_id),
        Money(total, property_obj.currency),
        on_date,
        check_in,
    )
