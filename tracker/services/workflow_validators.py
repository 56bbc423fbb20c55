"""
Workflow Validator Pipeline

Named predicate checks that gate a workflow transition. Every transition
stores an ordered JSON list of ``{"type": str, "config": {}}`` entries; the
engine decodes it into ``ValidatorSpec`` objects and runs them here before
any write happens.

Rules:
  - Validators run sequentially in stored order; the first failure aborts
    the pipeline and is the only error the caller sees.
  - An unregistered ``type`` is a hard failure, never skipped.
  - Validators never mutate state.

Built-in kinds:
  required_field    config.field names an issue property that must be non-null
  no_open_subtasks  no non-deleted child issue may sit outside a DONE status

Usage:
    from tracker.services.workflow_validators import (
        ValidatorContext, decode_validators, run_validators,
    )

    specs = decode_validators(transition.validators)
    run_validators(ValidatorContext(organization_id=1, issue=issue), specs)

Plugins:
    @register_validator("has_assignee")
    class HasAssigneeValidator(BaseValidator):
        def check(self, context, config):
            ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from sqlalchemy import func, select

from tracker.core.exceptions import WORKFLOW_TRANSITION_BLOCKED, ValidationError
from tracker.models import db
from tracker.models.issue import Issue
from tracker.models.workflow import Status, StatusCategory

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Data Classes
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ValidatorSpec:
    """One decoded ``{type, config}`` entry of a transition."""
    type: str
    config: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type, "config": dict(self.config)}


# Decoded form of a missing or malformed validator list.
NO_VALIDATORS: tuple[ValidatorSpec, ...] = ()


@dataclass
class ValidatorContext:
    """Everything a validator may read: tenant, issue and a DB session."""
    organization_id: int
    issue: Issue
    session: Any = None

    def __post_init__(self):
        if self.session is None:
            self.session = db.session


class Validator(Protocol):
    def validate_config(self, config: dict) -> None: ...

    def check(self, context: ValidatorContext, config: dict) -> None: ...


class BaseValidator:
    """Convenience base: no config requirements, subclasses implement check()."""

    kind: str = ""

    def validate_config(self, config: dict) -> None:
        return None

    def check(self, context: ValidatorContext, config: dict) -> None:
        raise NotImplementedError

    def fail(self, message: str, **details) -> ValidationError:
        return ValidationError(
            message,
            code=WORKFLOW_TRANSITION_BLOCKED,
            details={"validator": self.kind, **details},
        )


# ═════════════════════════════════════════════════════════════════════════════
# Registry
# ═════════════════════════════════════════════════════════════════════════════

class ValidatorRegistry:
    """Maps validator kind strings to validator instances."""

    def __init__(self) -> None:
        self._validators: dict[str, Validator] = {}

    def register(self, kind: str, validator: Validator, *, replace: bool = False) -> None:
        if not kind or not isinstance(kind, str):
            raise ValueError("Validator kind must be a non-empty string")
        if kind in self._validators and not replace:
            raise ValueError(f"Validator type already registered: {kind}")
        self._validators[kind] = validator
        logger.debug("Registered workflow validator %s", kind)

    def unregister(self, kind: str) -> None:
        self._validators.pop(kind, None)

    def is_registered(self, kind: str) -> bool:
        return kind in self._validators

    def kinds(self) -> list[str]:
        return sorted(self._validators)

    def get(self, kind: str) -> Validator:
        """Return the validator for *kind*; unknown kinds block the transition."""
        validator = self._validators.get(kind)
        if validator is None:
            raise ValidationError(
                f"Unknown validator type: {kind}",
                code=WORKFLOW_TRANSITION_BLOCKED,
                details={"validator": kind, "reason": "unknown_validator"},
            )
        return validator

    def run(self, context: ValidatorContext, specs) -> None:
        """Run *specs* in order; the first failure propagates."""
        for index, spec in enumerate(specs):
            validator = self.get(spec.type)
            validator.validate_config(spec.config)
            try:
                validator.check(context, spec.config)
            except ValidationError as exc:
                logger.info(
                    "Validator %s (#%d) blocked issue %s: %s",
                    spec.type, index, context.issue.id, exc,
                    extra={
                        "organization_id": context.organization_id,
                        "issue_id": context.issue.id,
                    },
                )
                raise


default_registry = ValidatorRegistry()


def register_validator(kind: str, *, registry: ValidatorRegistry | None = None,
                       replace: bool = False):
    """Class decorator registering an instance of the class under *kind*."""
    target = registry or default_registry

    def decorator(cls):
        cls.kind = kind
        target.register(kind, cls(), replace=replace)
        return cls
    return decorator


# ═════════════════════════════════════════════════════════════════════════════
# Built-in validators
# ═════════════════════════════════════════════════════════════════════════════

@register_validator("required_field")
class RequiredFieldValidator(BaseValidator):
    """Blocks unless ``issue.<config.field>`` is present and not null."""

    def validate_config(self, config: dict) -> None:
        name = config.get("field")
        if not isinstance(name, str) or not name:
            raise self.fail(
                "Validator 'required_field' is missing config.field",
                reason="invalid_config",
            )

    def check(self, context: ValidatorContext, config: dict) -> None:
        name = config["field"]
        if context.issue.field_value(name) is None:
            raise self.fail(f"Field '{name}' is required for this transition", field=name)


@register_validator("no_open_subtasks")
class NoOpenSubtasksValidator(BaseValidator):
    """Blocks while any non-deleted child issue is outside a DONE status."""

    def check(self, context: ValidatorContext, config: dict) -> None:
        open_count = count_open_subtasks(
            context.organization_id, context.issue.id, session=context.session,
        )
        if open_count > 0:
            raise self.fail(
                f"Issue has {open_count} open subtask(s)", open_subtasks=open_count,
            )


def count_open_subtasks(organization_id: int, issue_id: str, *, session=None) -> int:
    session = session or db.session
    stmt = (
        select(func.count(Issue.id))
        .join(Status, Issue.status_id == Status.id)
        .where(
            Issue.organization_id == organization_id,
            Issue.parent_id == issue_id,
            Issue.deleted_at.is_(None),
            Status.category != StatusCategory.DONE.value,
        )
    )
    return session.execute(stmt).scalar_one()


# ═════════════════════════════════════════════════════════════════════════════
# Decoding & pipeline entry points
# ═════════════════════════════════════════════════════════════════════════════

def _decode_entry(entry) -> ValidatorSpec:
    if not isinstance(entry, dict):
        raise TypeError(f"validator entry must be an object, got {type(entry).__name__}")
    kind = entry.get("type")
    if not isinstance(kind, str) or not kind:
        raise TypeError("validator entry requires a non-empty string 'type'")
    config = entry.get("config", {})
    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise TypeError(f"validator '{kind}' config must be an object")
    return ValidatorSpec(type=kind, config=dict(config))


def decode_validators(raw, *, strict: bool = False) -> tuple[ValidatorSpec, ...]:
    """Decode a stored validator list.

    A malformed list decodes to ``NO_VALIDATORS`` (logged), or raises
    ``ValidationError`` when *strict* is set.
    """
    if raw is None:
        return NO_VALIDATORS
    try:
        if not isinstance(raw, list):
            raise TypeError(f"validators must be a list, got {type(raw).__name__}")
        return tuple(_decode_entry(entry) for entry in raw)
    except TypeError as exc:
        if strict:
            raise ValidationError(
                f"Malformed validator configuration: {exc}",
                code=WORKFLOW_TRANSITION_BLOCKED,
                details={"reason": "malformed_validators"},
            ) from exc
        logger.warning("Ignoring malformed validator configuration: %s", exc)
        return NO_VALIDATORS


def run_validators(context: ValidatorContext, specs,
                   registry: ValidatorRegistry | None = None) -> None:
    """Run the pipeline against the default (or given) registry."""
    (registry or default_registry).run(context, specs)


def describe_validators(raw, registry: ValidatorRegistry | None = None) -> list[dict]:
    """Admin view of a stored validator list.

    Each decoded entry is annotated with ``registered`` and ``config_error``
    so tooling can flag workflows that reference removed validators.
    """
    registry = registry or default_registry
    described = []
    for spec in decode_validators(raw):
        entry = spec.to_dict()
        entry["registered"] = registry.is_registered(spec.type)
        entry["config_error"] = None
        if entry["registered"]:
            try:
                registry.get(spec.type).validate_config(spec.config)
            except ValidationError as exc:
                entry["config_error"] = str(exc)
        described.append(entry)
    return described
