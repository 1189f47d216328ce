from typing import Any

from pydantic import BaseModel


class AsanaIdentifiedResource(BaseModel, frozen=True):
    @classmethod
    def get_opt_fields(cls) -> list[str]:
        # gid is always automatically included
        return ["resource_type"]

    gid: str
    resource_type: str | None = None


def get_prefixed_opt_fields(cls: type[AsanaIdentifiedResource], prefix: str) -> list[str]:
    return [f"{prefix}.{field}" for field in cls.get_opt_fields()]


class AsanaNamedResource(AsanaIdentifiedResource, frozen=True):
    @classmethod
    def get_opt_fields(cls) -> list[str]:
        return super().get_opt_fields() + ["name"]

    name: str | None = None


class AsanaUser(AsanaNamedResource, frozen=True):
    pass


class AsanaWorkspace(AsanaNamedResource, frozen=True):
    pass


class AsanaProject(AsanaNamedResource, frozen=True):
    @classmethod
    def get_opt_fields(cls) -> list[str]:
        return super().get_opt_fields() + [
            "archived",
            "created_at",
            "modified_at",
            "color",
            "notes",
            *get_prefixed_opt_fields(AsanaWorkspace, "workspace"),
        ]

    archived: bool = False
    created_at: str | None = None
    modified_at: str | None = None
    color: str | None = None
    notes: str | None = None
    workspace: AsanaWorkspace | None = None


class AsanaEnumOption(AsanaNamedResource, frozen=True):
    pass


class AsanaCustomField(AsanaNamedResource, frozen=True):
    @classmethod
    def get_opt_fields(cls) -> list[str]:
        return super().get_opt_fields() + [
            "display_value",
            "number_value",
            "text_value",
            *get_prefixed_opt_fields(AsanaEnumOption, "enum_value"),
        ]

    display_value: str | None = None
    number_value: int | float | None = None
    text_value: str | None = None
    enum_value: AsanaEnumOption | None = None

    def cell_value(self) -> str | int | float | None:
        """Value written to the sheet: enum name, then number, then text, then display value."""
        if self.enum_value is not None:
            return self.enum_value.name
        if self.number_value is not None:
            return self.number_value
        if self.text_value:
            return self.text_value
        return self.display_value


class AsanaTaskProject(AsanaNamedResource, frozen=True):
    workspace: AsanaIdentifiedResource | None = None


class AsanaTaskMembership(BaseModel, frozen=True):
    project: AsanaTaskProject | None = None


class AsanaTask(AsanaNamedResource, frozen=True):
    @classmethod
    def get_opt_fields(cls) -> list[str]:
        return super().get_opt_fields() + [
            "completed",
            "completed_at",
            *get_prefixed_opt_fields(AsanaUser, "assignee"),
            *get_prefixed_opt_fields(AsanaCustomField, "custom_fields"),
            *get_prefixed_opt_fields(AsanaNamedResource, "memberships.project"),
            "memberships.project.workspace",
        ]

    completed: bool = False
    completed_at: str | None = None
    assignee: AsanaUser | None = None
    custom_fields: list[AsanaCustomField] = []
    memberships: list[AsanaTaskMembership] = []

    @property
    def assignee_name(self) -> str | None:
        return self.assignee.name if self.assignee else None

    @property
    def primary_project(self) -> AsanaTaskProject | None:
        """Project of the first membership, which decides the target row's project and workspace."""
        for membership in self.memberships[:1]:
            return membership.project
        return None


class AsanaWebhookFilter(BaseModel, frozen=True):
    action: str
    resource_type: str | None = None
    fields: list[str] | None = None


class AsanaWebhook(AsanaIdentifiedResource, frozen=True):
    @classmethod
    def get_opt_fields(cls) -> list[str]:
        return super().get_opt_fields() + [
            "active",
            "target",
            *get_prefixed_opt_fields(AsanaNamedResource, "resource"),
        ]

    active: bool | None = None
    target: str
    resource: AsanaNamedResource


# Webhook deliveries carry more than this (user, created_at, change), we only act on action + resource
class AsanaWebhookEvent(BaseModel, frozen=True):
    action: str  # changed | added | removed | deleted | undeleted
    resource: AsanaIdentifiedResource
    parent: AsanaIdentifiedResource | None = None
    user: AsanaIdentifiedResource | None = None
    created_at: str | None = None
    change: dict[str, Any] | None = None


class AsanaWebhookEventsPayload(BaseModel):
    events: list[AsanaWebhookEvent] = []


class AsanaNextPage(BaseModel):
    offset: str


class AsanaListRes[T](BaseModel):
    data: list[T]
    next_page: AsanaNextPage | None = None

    @property
    def next_offset(self) -> str | None:
        return self.next_page.offset if self.next_page else None


class AsanaProjectListRes(AsanaListRes[AsanaProject]):
    pass


class AsanaTaskListRes(AsanaListRes[AsanaTask]):
    pass


class AsanaWebhookListRes(AsanaListRes[AsanaWebhook]):
    pass
