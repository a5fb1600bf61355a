"""Code-defined onboarding templates.

A template is an ordered list of step definitions. Dependencies are expressed
with step keys local to the template and are resolved to step ids when the
template is expanded for a workflow. Every dependency must name a step that
appears earlier in the same template.
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .constants import (
    BACKGROUND_CHECK,
    DAY_1,
    DEFAULT_TEMPLATE,
    DOC_SEARCH,
    DOCUSIGN,
    MONTH_1,
    PRE_BOARDING,
    STAGES,
    STEP_BLOCKED,
    STEP_PENDING,
    WEEK_1,
)
from .models import IntegrationType, Stage, Step, StepType

logger = logging.getLogger(__name__)


class StepDefinition(BaseModel):
    """Blueprint for one step of a template."""

    key: str
    name: str
    stage: Stage
    step_type: StepType = "manual"
    description: Optional[str] = None
    integration_type: Optional[IntegrationType] = None
    integration_config: Dict[str, Any] = Field(default_factory=dict)
    depends_on: List[str] = Field(default_factory=list)
    due_offset_days: int = 0


def _docusign(key: str, name: str, document_type: str, due: int, **kwargs: Any) -> StepDefinition:
    return StepDefinition(
        key=key,
        name=name,
        stage=kwargs.pop("stage", PRE_BOARDING),
        step_type="integration",
        integration_type=DOCUSIGN,
        integration_config={"document_type": document_type},
        due_offset_days=due,
        **kwargs,
    )


GENERIC = [
    _docusign("offer-letter", "Send Offer Letter", "offer-letter", -7,
              description="Send offer letter for signature"),
    _docusign("i9", "Send I-9 Form", "i9", -5,
              description="Send I-9 employment eligibility form"),
    StepDefinition(key="welcome-email", name="Welcome Email", stage=DAY_1,
                   description="Send welcome email",
                   depends_on=["offer-letter", "i9"]),
    StepDefinition(key="office-tour", name="Office Tour", stage=DAY_1,
                   description="Conduct office tour",
                   depends_on=["offer-letter", "i9"]),
]

SOFTWARE_ENGINEER = [
    _docusign("offer-letter", "Send Offer Letter", "offer-letter", -7,
              description="Send offer letter via DocuSign for signature"),
    _docusign("i9", "Send I-9 Form", "i9", -5,
              description="Send I-9 Employment Eligibility form via DocuSign"),
    _docusign("w4", "Send W-4 Form", "w4", -5,
              description="Send W-4 tax withholding form via DocuSign"),
    StepDefinition(
        key="background-check",
        name="Initiate Background Check",
        stage=PRE_BOARDING,
        step_type="integration",
        description="Start criminal and employment background check",
        integration_type=BACKGROUND_CHECK,
        integration_config={"check_types": ["criminal", "employment"]},
        due_offset_days=-7,
    ),
    StepDefinition(key="equipment", name="Order Equipment", stage=PRE_BOARDING,
                   description="Order laptop, monitor, keyboard, mouse",
                   due_offset_days=-5),
    StepDefinition(
        key="documents",
        name="Fetch Onboarding Documents",
        stage=PRE_BOARDING,
        step_type="integration",
        description="Retrieve employee handbook and policies",
        integration_type=DOC_SEARCH,
        integration_config={"query": "handbook", "document_type": "handbook"},
        due_offset_days=-3,
    ),
    StepDefinition(key="email-account", name="Create Email Account", stage=PRE_BOARDING,
                   description="Setup company email and calendar access",
                   due_offset_days=-2),
    StepDefinition(key="dev-access", name="Setup Development Environment Access",
                   stage=PRE_BOARDING,
                   description="Create GitHub, Jira, and Confluence accounts",
                   depends_on=["email-account"], due_offset_days=-1),
    StepDefinition(key="welcome-email", name="Send Welcome Email", stage=DAY_1,
                   description="Send welcome email with first day instructions",
                   depends_on=["email-account"]),
    StepDefinition(key="office-tour", name="Office Tour", stage=DAY_1,
                   description="Conduct office tour and introductions",
                   depends_on=["offer-letter"]),
    StepDefinition(key="laptop", name="IT Setup - Laptop Configuration", stage=DAY_1,
                   description="Setup laptop with required software and tools",
                   depends_on=["equipment", "dev-access"]),
    StepDefinition(key="access-card", name="Building Access Card", stage=DAY_1,
                   description="Issue building access card and parking pass",
                   depends_on=["background-check"]),
    _docusign("benefits", "Benefits Enrollment", "benefits", 3, stage=WEEK_1,
              description="Complete benefits enrollment forms",
              depends_on=["i9", "w4"]),
    StepDefinition(key="codebase", name="Codebase Onboarding", stage=WEEK_1,
                   description="Review codebase architecture and setup local environment",
                   depends_on=["laptop"], due_offset_days=4),
    StepDefinition(key="first-review", name="First Code Review", stage=WEEK_1,
                   description="Submit first pull request and participate in code review",
                   depends_on=["codebase"], due_offset_days=5),
    StepDefinition(key="check-in", name="30-Day Check-in", stage=MONTH_1,
                   description="Conduct 30-day check-in meeting with manager",
                   depends_on=["first-review"], due_offset_days=30),
    StepDefinition(key="goals", name="Goal Setting Session", stage=MONTH_1,
                   description="Set quarterly goals and expectations",
                   depends_on=["check-in"], due_offset_days=30),
]

SALES_REPRESENTATIVE = GENERIC + [
    StepDefinition(key="crm", name="CRM Account Setup", stage=DAY_1,
                   description="Create CRM login and load assigned accounts",
                   depends_on=["welcome-email"]),
    StepDefinition(key="sales-training", name="Sales Training", stage=WEEK_1,
                   description="Complete product and sales methodology training",
                   depends_on=["crm"], due_offset_days=5),
    StepDefinition(key="territory", name="Territory Assignment", stage=MONTH_1,
                   description="Review territory and quota with sales manager",
                   depends_on=["sales-training"], due_offset_days=30),
]

MANAGER = GENERIC + [
    StepDefinition(key="team-intros", name="Team Introductions", stage=DAY_1,
                   description="Meet direct reports one on one",
                   depends_on=["welcome-email"]),
    StepDefinition(key="leadership-training", name="Leadership Training", stage=WEEK_1,
                   description="Attend leadership essentials training",
                   depends_on=["team-intros"], due_offset_days=5),
    StepDefinition(key="check-in", name="30-Day Check-in", stage=MONTH_1,
                   description="Conduct 30-day check-in with senior leadership",
                   depends_on=["leadership-training"], due_offset_days=30),
]

TEMPLATES: Dict[str, List[StepDefinition]] = {
    "generic": GENERIC,
    "software-engineer": SOFTWARE_ENGINEER,
    "sales-representative": SALES_REPRESENTATIVE,
    "manager": MANAGER,
}


def resolve_template_name(name: Optional[str]) -> str:
    """Map ``name`` to a known template, falling back to the generic one."""
    if name in TEMPLATES:
        return name
    logger.info(f"Unknown template {name!r}, falling back to {DEFAULT_TEMPLATE}")
    return DEFAULT_TEMPLATE


def list_templates() -> List[str]:
    return list(TEMPLATES)


def expand_template(name: str, workflow_id: str, start: datetime) -> List[Step]:
    """Create the steps of template ``name`` for ``workflow_id``.

    Steps in the first stage without dependencies start ``pending``; every
    other step starts ``blocked``.
    """
    definitions = TEMPLATES[resolve_template_name(name)]
    ids: Dict[str, str] = {}
    steps: List[Step] = []
    for order, definition in enumerate(definitions, start=1):
        dependencies = [ids[key] for key in definition.depends_on]
        initial = (
            STEP_PENDING
            if definition.stage == STAGES[0] and not dependencies
            else STEP_BLOCKED
        )
        step = Step(
            workflow_id=workflow_id,
            order_index=order,
            name=definition.name,
            description=definition.description,
            step_type=definition.step_type,
            stage=definition.stage,
            integration_type=definition.integration_type,
            integration_config=copy.deepcopy(definition.integration_config),
            status=initial,
            dependencies=dependencies,
            due_date=start + timedelta(days=definition.due_offset_days),
        )
        ids[definition.key] = step.id
        steps.append(step)
    return steps
