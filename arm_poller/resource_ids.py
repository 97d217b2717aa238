from enum import Enum
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict

from arm_poller.errors import InvalidResourceIdError


class SegmentKind(str, Enum):
    static = "static"
    resource_provider = "resource_provider"
    subscription_id = "subscription_id"
    resource_group = "resource_group"
    user_specified = "user_specified"


class Segment(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    kind: SegmentKind
    fixed_value: Optional[str] = None
    example_value: str

    @property
    def is_fixed(self) -> bool:
        return self.fixed_value is not None


def static_segment(value: str) -> Segment:
    return Segment(
        name=f"static_{value}", kind=SegmentKind.static, fixed_value=value, example_value=value
    )


def resource_provider_segment(value: str) -> Segment:
    return Segment(
        name=f"provider_{value}",
        kind=SegmentKind.resource_provider,
        fixed_value=value,
        example_value=value,
    )


def subscription_id_segment(name: str = "subscription_id") -> Segment:
    return Segment(
        name=name,
        kind=SegmentKind.subscription_id,
        example_value="12345678-1234-9876-4563-123456789012",
    )


def resource_group_segment(name: str = "resource_group") -> Segment:
    return Segment(
        name=name, kind=SegmentKind.resource_group, example_value="example-resource-group"
    )


def user_specified_segment(name: str, example_value: str) -> Segment:
    return Segment(name=name, kind=SegmentKind.user_specified, example_value=example_value)


class ResourceId(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: ClassVar[str] = "Resource"

    @classmethod
    def segments(cls) -> list[Segment]:
        raise NotImplementedError

    def id(self) -> str:
        parts = [
            seg.fixed_value if seg.is_fixed else getattr(self, seg.name)
            for seg in self.segments()
        ]
        return "/" + "/".join(parts)

    @classmethod
    def parse(cls, value: str, insensitive: bool = False):
        """Parses ``value`` into this ID type.

        ``insensitive`` should only be used for API response data, never for user input.
        """
        if not isinstance(value, str) or not value.strip("/"):
            raise InvalidResourceIdError(str(value), "the resource ID was empty")

        parts = value.strip("/").split("/")
        segments = cls.segments()
        if len(parts) != len(segments):
            raise InvalidResourceIdError(
                value,
                f"expected {len(segments)} segments for a {cls.description} ID"
                f" but got {len(parts)}, example: {cls.example()!r}",
            )

        fields: dict[str, str] = {}
        for seg, part in zip(segments, parts):
            if seg.is_fixed:
                if insensitive:
                    matches = part.lower() == seg.fixed_value.lower()
                else:
                    matches = part == seg.fixed_value
                if not matches:
                    raise InvalidResourceIdError(
                        value, f"expected the segment {seg.fixed_value!r} but got {part!r}"
                    )
                continue
            if not part:
                raise InvalidResourceIdError(value, f"the segment {seg.name!r} was empty")
            fields[seg.name] = part
        return cls(**fields)

    @classmethod
    def validate_id(cls, value: Any, key: str) -> tuple[list[str], list[str]]:
        """Returns (warnings, errors) for a user-supplied ID"""
        warnings: list[str] = []
        errors: list[str] = []
        if not isinstance(value, str):
            errors.append(f"expected {key!r} to be a string")
            return warnings, errors
        try:
            cls.parse(value)
        except InvalidResourceIdError as e:
            errors.append(str(e))
        return warnings, errors

    @classmethod
    def example(cls) -> str:
        return "/" + "/".join(
            seg.fixed_value if seg.is_fixed else seg.example_value for seg in cls.segments()
        )

    def __str__(self) -> str:
        components = [
            f"{seg.name.replace('_', ' ').title()}: {getattr(self, seg.name)!r}"
            for seg in self.segments()
            if not seg.is_fixed
        ]
        return f"{self.description} ({', '.join(components)})"


class ResourceGroupId(ResourceId):
    description: ClassVar[str] = "Resource Group"

    subscription_id: str
    resource_group: str

    @classmethod
    def segments(cls) -> list[Segment]:
        return [
            static_segment("subscriptions"),
            subscription_id_segment(),
            static_segment("resourceGroups"),
            resource_group_segment(),
        ]


class VirtualNetworkId(ResourceId):
    description: ClassVar[str] = "Virtual Network"

    subscription_id: str
    resource_group: str
    virtual_network_name: str

    @classmethod
    def segments(cls) -> list[Segment]:
        return ResourceGroupId.segments() + [
            static_segment("providers"),
            resource_provider_segment("Microsoft.Network"),
            static_segment("virtualNetworks"),
            user_specified_segment("virtual_network_name", "virtualNetworkValue"),
        ]


class VirtualNetworkPeeringId(ResourceId):
    description: ClassVar[str] = "Virtual Network Peering"

    subscription_id: str
    resource_group: str
    virtual_network_name: str
    name: str

    @classmethod
    def segments(cls) -> list[Segment]:
        return VirtualNetworkId.segments() + [
            static_segment("virtualNetworkPeerings"),
            user_specified_segment("name", "virtualNetworkPeeringValue"),
        ]

    def virtual_network_id(self) -> VirtualNetworkId:
        return VirtualNetworkId(
            subscription_id=self.subscription_id,
            resource_group=self.resource_group,
            virtual_network_name=self.virtual_network_name,
        )


class ProviderLocationId(ResourceId):
    description: ClassVar[str] = "Provider Location"

    subscription_id: str
    location: str

    @classmethod
    def segments(cls) -> list[Segment]:
        return [
            static_segment("subscriptions"),
            subscription_id_segment(),
            static_segment("providers"),
            resource_provider_segment("Microsoft.EventGrid"),
            static_segment("locations"),
            user_specified_segment("location", "locationValue"),
        ]


class LocationTopicTypeId(ResourceId):
    description: ClassVar[str] = "Location Topic Type"

    subscription_id: str
    location: str
    topic_type_name: str

    @classmethod
    def segments(cls) -> list[Segment]:
        return ProviderLocationId.segments() + [
            static_segment("topicTypes"),
            user_specified_segment("topic_type_name", "topicTypeValue"),
        ]
