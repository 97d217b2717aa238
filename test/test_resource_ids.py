import pytest
from arm_poller.errors import InvalidResourceIdError
from arm_poller.resource_ids import (
    LocationTopicTypeId,
    ResourceGroupId,
    VirtualNetworkId,
    VirtualNetworkPeeringId,
)

PEERING = (
    "/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Network"
    "/virtualNetworks/vnet1/virtualNetworkPeerings/peer1"
)


def test_format_and_parse():
    pid = VirtualNetworkPeeringId.parse(PEERING)

    assert pid.subscription_id == "sub"
    assert pid.resource_group == "rg"
    assert pid.virtual_network_name == "vnet1"
    assert pid.name == "peer1"
    assert pid.id() == PEERING
    assert pid.virtual_network_id().id() == PEERING.split("/virtualNetworkPeerings")[0]


def test_parse_is_case_sensitive_by_default():
    mixed = PEERING.replace("resourceGroups", "resourcegroups")

    with pytest.raises(InvalidResourceIdError):
        VirtualNetworkPeeringId.parse(mixed)

    assert VirtualNetworkPeeringId.parse(mixed, insensitive=True).id() == PEERING


@pytest.mark.parametrize(
    "value",
    [
        "",
        "/subscriptions/sub",
        "/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Network/virtualNetworks/vnet1",
        PEERING + "/extra/segments",
        PEERING.replace("Microsoft.Network", "Microsoft.Compute"),
    ],
)
def test_rejects_malformed_ids(value):
    with pytest.raises(InvalidResourceIdError):
        VirtualNetworkPeeringId.parse(value)


def test_validate_id():
    assert VirtualNetworkId.validate_id(42, "virtual_network_id") == (
        [],
        ["expected 'virtual_network_id' to be a string"],
    )
    warnings, errors = ResourceGroupId.validate_id("/subscriptions/sub/resourceGroups/rg", "id")
    assert (warnings, errors) == ([], [])


def test_topic_type_id_and_description():
    tid = LocationTopicTypeId(
        subscription_id="sub", location="westeurope", topic_type_name="Microsoft.Storage"
    )

    assert tid.id() == (
        "/subscriptions/sub/providers/Microsoft.EventGrid/locations/westeurope"
        "/topicTypes/Microsoft.Storage"
    )
    assert str(tid).startswith("Location Topic Type (")
    assert "'westeurope'" in str(tid)
    assert LocationTopicTypeId.example().endswith("/topicTypes/topicTypeValue")
