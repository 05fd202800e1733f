"""Connection data model.

A ``Connections`` value joins the ECS task, container instance and EC2
responses gathered by the aggregator. It is immutable: every enrichment step
returns a new value built from one API response, and an identifier that was
never seen before raises ``MissingJoinKeyError``.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from heimdallr.exceptions import MissingJoinKeyError


@dataclass(frozen=True)
class Container:
    """A running container inside an ECS task."""

    name: str
    runtime_id: str


@dataclass(frozen=True)
class InstanceDetails:
    """The EC2 instance backing a task. All three values are set together."""

    instance_id: str
    instance_name: str
    private_ip: str


@dataclass(frozen=True)
class Connection:
    """Everything known about one ECS task."""

    container_instance_id: str | None = None
    containers: tuple[Container, ...] = ()
    instance: InstanceDetails | None = None


@dataclass(frozen=True)
class HostChoice:
    """An EC2 instance reached directly over SSH."""

    instance_id: str
    instance_name: str
    private_ip: str

    def __str__(self) -> str:
        return f" () on {self.instance_name} ({self.instance_id})"


@dataclass(frozen=True)
class ContainerChoice:
    """A container reached with docker exec on its EC2 host."""

    instance_id: str
    instance_name: str
    private_ip: str
    container_name: str
    runtime_id: str

    def __str__(self) -> str:
        return (
            f"{self.container_name} ({self.runtime_id}) "
            f"on {self.instance_name} ({self.instance_id})"
        )


ConnectionChoice = HostChoice | ContainerChoice


def _freeze(mapping: dict) -> Mapping:
    return MappingProxyType(mapping)


def _add_to_index(index: dict[str, tuple[str, ...]], key: str, task_id: str) -> None:
    existing = index.get(key, ())
    if task_id not in existing:
        index[key] = existing + (task_id,)


@dataclass(frozen=True)
class Connections:
    """Join tables keyed by task id, plus reverse indexes for later fan-in.

    ``container_instance_index`` and ``instance_index`` are multi-valued: a
    single container instance (and its EC2 instance) may run several tasks.
    """

    connections: Mapping[str, Connection] = field(default_factory=lambda: _freeze({}))
    container_instance_index: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: _freeze({})
    )
    instance_index: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: _freeze({}))

    @classmethod
    def from_task_ids(cls, task_ids: Iterable[str]) -> "Connections":
        """Seed one empty Connection per task."""
        return cls(connections=_freeze({task_id: Connection() for task_id in task_ids}))

    def task_ids(self) -> list[str]:
        return sorted(self.connections)

    def container_instance_ids(self) -> list[str]:
        return sorted(self.container_instance_index)

    def instance_ids(self) -> list[str]:
        return sorted(self.instance_index)

    def get(self, task_id: str) -> Connection:
        try:
            return self.connections[task_id]
        except KeyError:
            raise MissingJoinKeyError("task", task_id) from None

    def __len__(self) -> int:
        return len(self.connections)

    def with_containers(
        self, placements: Iterable[tuple[str, str, Container]]
    ) -> "Connections":
        """Attach containers to their tasks.

        Args:
            placements: (task_id, container_instance_id, container) triples

        Raises:
            MissingJoinKeyError: If a task id was not seeded by from_task_ids
        """
        containers: dict[str, list[Container]] = {}
        container_instance_ids: dict[str, str] = {}
        for task_id, container_instance_id, container in placements:
            self.get(task_id)
            containers.setdefault(task_id, []).append(container)
            container_instance_ids[task_id] = container_instance_id

        connections = dict(self.connections)
        index = dict(self.container_instance_index)
        for task_id, added in containers.items():
            current = connections[task_id]
            connections[task_id] = replace(
                current,
                container_instance_id=container_instance_ids[task_id],
                containers=current.containers + tuple(added),
            )
            _add_to_index(index, container_instance_ids[task_id], task_id)

        return replace(
            self,
            connections=_freeze(connections),
            container_instance_index=_freeze(index),
        )

    def with_instance_ids(self, mappings: Iterable[tuple[str, str]]) -> "Connections":
        """Record which EC2 instance backs each container instance.

        Args:
            mappings: (container_instance_id, ec2_instance_id) pairs

        Raises:
            MissingJoinKeyError: If a container instance id is unknown
        """
        index = dict(self.instance_index)
        for container_instance_id, instance_id in mappings:
            task_ids = self.container_instance_index.get(container_instance_id)
            if task_ids is None:
                raise MissingJoinKeyError("container instance", container_instance_id)
            for task_id in task_ids:
                _add_to_index(index, instance_id, task_id)

        return replace(self, instance_index=_freeze(index))

    def with_instance_details(self, details: Iterable[InstanceDetails]) -> "Connections":
        """Propagate EC2 name and private IP to every task on that instance.

        Raises:
            MissingJoinKeyError: If an instance id is unknown
        """
        connections = dict(self.connections)
        for detail in details:
            task_ids = self.instance_index.get(detail.instance_id)
            if task_ids is None:
                raise MissingJoinKeyError("EC2 instance", detail.instance_id)
            for task_id in task_ids:
                connections[task_id] = replace(connections[task_id], instance=detail)

        return replace(self, connections=_freeze(connections))

    def get_connection_choices(self) -> list[ContainerChoice]:
        """Flatten to one choice per container on a resolved instance.

        Tasks whose EC2 instance could not be resolved are left out.
        """
        choices: list[ContainerChoice] = []
        for task_id in self.task_ids():
            connection = self.connections[task_id]
            if connection.instance is None:
                continue
            for container in connection.containers:
                choices.append(
                    ContainerChoice(
                        instance_id=connection.instance.instance_id,
                        instance_name=connection.instance.instance_name,
                        private_ip=connection.instance.private_ip,
                        container_name=container.name,
                        runtime_id=container.runtime_id,
                    )
                )
        return choices
