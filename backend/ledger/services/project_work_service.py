"""
Milestones and tasks of a project, the inputs of the ``milestones`` and
``tasks`` progress modes.
"""

import logging

from django.db import transaction as db_transaction

from ..exceptions import InvalidInput, NotFound, OwnershipViolation
from ..models import Project, ProjectMilestone, ProjectTask
from ..utils.money_utils import normalize_label, parse_percentage
from . import ownership

logger = logging.getLogger(__name__)

MILESTONE_STATUSES = {choice for choice, _ in ProjectMilestone.STATUS_CHOICES}
TASK_STATUSES = {choice for choice, _ in ProjectTask.STATUS_CHOICES}
TASK_PRIORITIES = {choice for choice, _ in Project.PRIORITY_CHOICES}


def _assert_child_owned(model, child_id, user):
    try:
        child = model.objects.select_related("project").get(pk=child_id)
    except (model.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"{model.__name__} not found", code=f"{model._meta.model_name}_not_found")
    if child.project.user_id != user.id:
        raise OwnershipViolation(
            f"{model.__name__} does not belong to the current user",
            code=f"{model._meta.model_name}_ownership_violation",
        )
    return child


class ProjectMilestoneService:
    @staticmethod
    @db_transaction.atomic
    def add_milestone(user, project_id, name, due_date=None, status="not_started", weight_pct=None):
        """Append a milestone; its ``order_index`` is the current milestone count."""
        project = ownership.assert_project_owned_by_user(project_id, user)
        name = normalize_label(name)
        if not name:
            raise InvalidInput("Milestone name is required", code="invalid_name")
        if status not in MILESTONE_STATUSES:
            raise InvalidInput(f"Invalid milestone status: {status}", code="invalid_status")

        milestone = ProjectMilestone.objects.create(
            project=project,
            name=name,
            due_date=due_date,
            status=status,
            weight_pct=parse_percentage(weight_pct, "weight_pct"),
            order_index=project.milestones.count(),
        )
        logger.info(
            "Milestone added",
            extra={
                "user_id": user.id,
                "project_id": project.id,
                "milestone_id": milestone.id,
                "action": "milestone_added",
                "component": "ProjectMilestoneService",
            },
        )
        return milestone

    @staticmethod
    def update_milestone(user, milestone_id, **changes):
        milestone = _assert_child_owned(ProjectMilestone, milestone_id, user)
        if "name" in changes:
            name = normalize_label(changes["name"])
            if not name:
                raise InvalidInput("Milestone name is required", code="invalid_name")
            milestone.name = name
        if "status" in changes:
            if changes["status"] not in MILESTONE_STATUSES:
                raise InvalidInput("Invalid milestone status", code="invalid_status")
            milestone.status = changes["status"]
        if "weight_pct" in changes:
            milestone.weight_pct = parse_percentage(changes["weight_pct"], "weight_pct")
        if "order_index" in changes:
            if int(changes["order_index"]) < 0:
                raise InvalidInput("order_index must be >= 0", code="invalid_order_index")
            milestone.order_index = int(changes["order_index"])
        if "due_date" in changes:
            milestone.due_date = changes["due_date"]
        milestone.save()
        return milestone

    @staticmethod
    def delete_milestone(user, milestone_id):
        _assert_child_owned(ProjectMilestone, milestone_id, user).delete()

    @staticmethod
    def list_milestones(user, project_id):
        project = ownership.assert_project_owned_by_user(project_id, user)
        return list(project.milestones.order_by("order_index", "id"))


class ProjectTaskService:
    @staticmethod
    def add_task(user, project_id, title, status="todo", priority="normal", due_date=None, estimate_hours=None):
        project = ownership.assert_project_owned_by_user(project_id, user)
        title = normalize_label(title)
        if not title:
            raise InvalidInput("Task title is required", code="invalid_title")
        if status not in TASK_STATUSES:
            raise InvalidInput(f"Invalid task status: {status}", code="invalid_status")
        if priority not in TASK_PRIORITIES:
            raise InvalidInput(f"Invalid task priority: {priority}", code="invalid_priority")
        return ProjectTask.objects.create(
            project=project,
            title=title,
            status=status,
            priority=priority,
            due_date=due_date,
            estimate_hours=estimate_hours,
        )

    @staticmethod
    def update_task(user, task_id, **changes):
        task = _assert_child_owned(ProjectTask, task_id, user)
        if "title" in changes:
            title = normalize_label(changes["title"])
            if not title:
                raise InvalidInput("Task title is required", code="invalid_title")
            task.title = title
        if "status" in changes:
            if changes["status"] not in TASK_STATUSES:
                raise InvalidInput("Invalid task status", code="invalid_status")
            task.status = changes["status"]
        if "priority" in changes:
            if changes["priority"] not in TASK_PRIORITIES:
                raise InvalidInput("Invalid task priority", code="invalid_priority")
            task.priority = changes["priority"]
        for field in ("due_date", "estimate_hours"):
            if field in changes:
                setattr(task, field, changes[field])
        task.save()
        return task

    @staticmethod
    def delete_task(user, task_id):
        _assert_child_owned(ProjectTask, task_id, user).delete()

    @staticmethod
    def list_tasks(user, project_id, status=None):
        project = ownership.assert_project_owned_by_user(project_id, user)
        queryset = project.tasks.all()
        if status:
            queryset = queryset.filter(status=status)
        return list(queryset)
