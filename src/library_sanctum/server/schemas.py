"""Request bodies accepted by the library REST backend."""

from pydantic import BaseModel, ConfigDict

from library_sanctum.models.node import NodeKind


class FileCreate(BaseModel):
    """A full record sent when a node is created."""

    model_config = ConfigDict(extra="ignore")

    id: str
    parentId: str | None = None
    name: str | None = None
    type: NodeKind | None = None
    content: str | None = None
    url: str | None = None
    lastModified: int | None = None
    version: int | None = 1


class FileUpdate(BaseModel):
    """A partial update; only fields present in the body are applied."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    content: str | None = None
    parentId: str | None = None
    type: NodeKind | None = None
    url: str | None = None
    version: int | None = None
