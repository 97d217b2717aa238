from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from arm_poller.models import WireModel


# Advanced filters, tagged on "operatorType"


class NumberInAdvancedFilter(WireModel):
    operator_type: Literal["NumberIn"] = "NumberIn"
    key: Optional[str] = None
    values: Optional[list[float]] = None


class NumberNotInAdvancedFilter(WireModel):
    operator_type: Literal["NumberNotIn"] = "NumberNotIn"
    key: Optional[str] = None
    values: Optional[list[float]] = None


class NumberLessThanAdvancedFilter(WireModel):
    operator_type: Literal["NumberLessThan"] = "NumberLessThan"
    key: Optional[str] = None
    value: Optional[float] = None


class NumberGreaterThanAdvancedFilter(WireModel):
    operator_type: Literal["NumberGreaterThan"] = "NumberGreaterThan"
    key: Optional[str] = None
    value: Optional[float] = None


class NumberLessThanOrEqualsAdvancedFilter(WireModel):
    operator_type: Literal["NumberLessThanOrEquals"] = "NumberLessThanOrEquals"
    key: Optional[str] = None
    value: Optional[float] = None


class NumberGreaterThanOrEqualsAdvancedFilter(WireModel):
    operator_type: Literal["NumberGreaterThanOrEquals"] = "NumberGreaterThanOrEquals"
    key: Optional[str] = None
    value: Optional[float] = None


class NumberInRangeAdvancedFilter(WireModel):
    operator_type: Literal["NumberInRange"] = "NumberInRange"
    key: Optional[str] = None
    values: Optional[list[list[float]]] = None


class NumberNotInRangeAdvancedFilter(WireModel):
    operator_type: Literal["NumberNotInRange"] = "NumberNotInRange"
    key: Optional[str] = None
    values: Optional[list[list[float]]] = None


class BoolEqualsAdvancedFilter(WireModel):
    operator_type: Literal["BoolEquals"] = "BoolEquals"
    key: Optional[str] = None
    value: Optional[bool] = None


class StringInAdvancedFilter(WireModel):
    operator_type: Literal["StringIn"] = "StringIn"
    key: Optional[str] = None
    values: Optional[list[str]] = None


class StringNotInAdvancedFilter(WireModel):
    operator_type: Literal["StringNotIn"] = "StringNotIn"
    key: Optional[str] = None
    values: Optional[list[str]] = None


class StringBeginsWithAdvancedFilter(WireModel):
    operator_type: Literal["StringBeginsWith"] = "StringBeginsWith"
    key: Optional[str] = None
    values: Optional[list[str]] = None


class StringEndsWithAdvancedFilter(WireModel):
    operator_type: Literal["StringEndsWith"] = "StringEndsWith"
    key: Optional[str] = None
    values: Optional[list[str]] = None


class StringContainsAdvancedFilter(WireModel):
    operator_type: Literal["StringContains"] = "StringContains"
    key: Optional[str] = None
    values: Optional[list[str]] = None


class IsNullOrUndefinedAdvancedFilter(WireModel):
    operator_type: Literal["IsNullOrUndefined"] = "IsNullOrUndefined"
    key: Optional[str] = None


class IsNotNullAdvancedFilter(WireModel):
    operator_type: Literal["IsNotNull"] = "IsNotNull"
    key: Optional[str] = None


AdvancedFilter = Annotated[
    Union[
        NumberInAdvancedFilter,
        NumberNotInAdvancedFilter,
        NumberLessThanAdvancedFilter,
        NumberGreaterThanAdvancedFilter,
        NumberLessThanOrEqualsAdvancedFilter,
        NumberGreaterThanOrEqualsAdvancedFilter,
        NumberInRangeAdvancedFilter,
        NumberNotInRangeAdvancedFilter,
        BoolEqualsAdvancedFilter,
        StringInAdvancedFilter,
        StringNotInAdvancedFilter,
        StringBeginsWithAdvancedFilter,
        StringEndsWithAdvancedFilter,
        StringContainsAdvancedFilter,
        IsNullOrUndefinedAdvancedFilter,
        IsNotNullAdvancedFilter,
    ],
    Field(discriminator="operator_type"),
]


# Dead letter destinations, tagged on "endpointType"


class StorageBlobDeadLetterDestinationProperties(WireModel):
    resource_id: Optional[str] = None
    blob_container_name: Optional[str] = None


class StorageBlobDeadLetterDestination(WireModel):
    endpoint_type: Literal["StorageBlob"] = "StorageBlob"
    properties: Optional[StorageBlobDeadLetterDestinationProperties] = None


# StorageBlob is the only destination the API defines so far
DeadLetterDestination = StorageBlobDeadLetterDestination


# Delivery attribute mappings, tagged on "type"


class StaticDeliveryAttributeMappingProperties(WireModel):
    value: Optional[str] = None
    is_secret: Optional[bool] = None


class StaticDeliveryAttributeMapping(WireModel):
    type: Literal["Static"] = "Static"
    name: Optional[str] = None
    properties: Optional[StaticDeliveryAttributeMappingProperties] = None


class DynamicDeliveryAttributeMappingProperties(WireModel):
    source_field: Optional[str] = None


class DynamicDeliveryAttributeMapping(WireModel):
    type: Literal["Dynamic"] = "Dynamic"
    name: Optional[str] = None
    properties: Optional[DynamicDeliveryAttributeMappingProperties] = None


DeliveryAttributeMapping = Annotated[
    Union[StaticDeliveryAttributeMapping, DynamicDeliveryAttributeMapping],
    Field(discriminator="type"),
]


class EventSubscriptionFilter(WireModel):
    subject_begins_with: Optional[str] = None
    subject_ends_with: Optional[str] = None
    included_event_types: Optional[list[str]] = None
    is_subject_case_sensitive: Optional[bool] = None
    enable_advanced_filtering_on_arrays: Optional[bool] = None
    advanced_filters: Optional[list[AdvancedFilter]] = None


_advanced_filter = TypeAdapter(AdvancedFilter)
_dead_letter_destination = TypeAdapter(DeadLetterDestination)
_delivery_attribute_mapping = TypeAdapter(DeliveryAttributeMapping)


def encode_variant(model: BaseModel) -> dict[str, Any]:
    """Dumps a variant with its wire names; the tag is always present"""
    return model.model_dump(by_alias=True, exclude_none=True)


def decode_advanced_filter(data: dict[str, Any]):
    return _advanced_filter.validate_python(data)


def decode_dead_letter_destination(data: dict[str, Any]):
    if "endpointType" not in data:
        raise ValueError("dead letter destination is missing its endpointType")
    return _dead_letter_destination.validate_python(data)


def decode_delivery_attribute_mapping(data: dict[str, Any]):
    return _delivery_attribute_mapping.validate_python(data)
