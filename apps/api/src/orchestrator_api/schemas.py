from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskCreate(BaseModel):
    id: str = Field(min_length=1, description="Unique identifier for the task")
    description: str = Field(description="Description of the task")
    dependencies: list[str] | None = Field(
        default=None,
        description="IDs of tasks that must be completed first",
    )

    @model_validator(mode="after")
    def normalize_fields(self) -> "TaskCreate":
        if self.dependencies is not None:
            self.dependencies = _unique_ids(self.dependencies)
        return self


class TaskUpdate(BaseModel):
    description: str | None = Field(default=None, description="New description for the task")
    dependencies: list[str] | None = Field(
        default=None,
        description="New list of dependency task IDs, replacing the current one",
    )

    @model_validator(mode="after")
    def normalize_fields(self) -> "TaskUpdate":
        if self.dependencies is not None:
            self.dependencies = _unique_ids(self.dependencies)
        return self


class TaskComplete(BaseModel):
    instance_id: str = Field(min_length=1, description="ID of the instance completing the task")
    result: str = Field(description="Result or output from the task")


class TaskRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    description: str
    status: TaskStatus = TaskStatus.PENDING
    dependencies: list[str] | None = None
    assigned_to: str | None = Field(default=None, alias="assignedTo")
    result: str | None = None

    @model_validator(mode="after")
    def validate_lifecycle_fields(self) -> "TaskRead":
        if self.status == TaskStatus.PENDING and self.assigned_to is not None:
            raise ValueError("pending task cannot have assignedTo")
        if self.status != TaskStatus.PENDING and self.assigned_to is None:
            raise ValueError(f"{self.status.value} task requires assignedTo")
        if self.status == TaskStatus.COMPLETED and self.result is None:
            raise ValueError("completed task requires result")
        if self.status != TaskStatus.COMPLETED and self.result is not None:
            raise ValueError(f"{self.status.value} task cannot have result")
        return self


class NoTaskAvailable(BaseModel):
    status: Literal["no_tasks"] = "no_tasks"


class DeleteTaskResponse(BaseModel):
    task_id: str
    deleted: bool = True


class CompleteTaskResponse(BaseModel):
    completed_task: TaskRead
    unlocked_tasks: list[TaskRead] = Field(default_factory=list)


class ToolDescriptor(BaseModel):
    name: str
    description: str
    input_schema: dict[str, Any] = Field(alias="inputSchema")

    model_config = ConfigDict(populate_by_name=True)


class CreateTaskOperation(TaskCreate):
    operation: Literal["create_task"] = "create_task"


class UpdateTaskOperation(TaskUpdate):
    operation: Literal["update_task"] = "update_task"
    task_id: str = Field(min_length=1, description="ID of the task to update")


class DeleteTaskOperation(BaseModel):
    operation: Literal["delete_task"] = "delete_task"
    task_id: str = Field(min_length=1, description="ID of the task to delete")


class GetNextTaskOperation(BaseModel):
    operation: Literal["get_next_task"] = "get_next_task"
    instance_id: str = Field(min_length=1, description="ID of the instance requesting work")


class CompleteTaskOperation(TaskComplete):
    operation: Literal["complete_task"] = "complete_task"
    task_id: str = Field(min_length=1, description="ID of the task to complete")


class GetTaskStatusOperation(BaseModel):
    operation: Literal["get_task_status"] = "get_task_status"


class GetTaskDetailsOperation(BaseModel):
    operation: Literal["get_task_details"] = "get_task_details"
    task_id: str = Field(min_length=1, description="ID of the task to get details for")


OperationRequest = Annotated[
    Union[
        CreateTaskOperation,
        UpdateTaskOperation,
        DeleteTaskOperation,
        GetNextTaskOperation,
        CompleteTaskOperation,
        GetTaskStatusOperation,
        GetTaskDetailsOperation,
    ],
    Field(discriminator="operation"),
]


def _unique_ids(values: list[str]) -> list[str]:
    unique: list[str] = []
    for value in values:
        if value in unique:
            continue
        unique.append(value)
    return unique
