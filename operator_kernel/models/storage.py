"""Storage state — objects held in a cluster's storage container."""

from pydantic import BaseModel


class ContainerObject(BaseModel):
    """A named blob inside a storage container, e.g. a node bootstrap config."""

    key: str
    body: str
    container_name: str
    storage_account_name: str
