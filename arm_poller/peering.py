from typing import Optional

from loguru import logger

from arm_poller.codec import decode_model
from arm_poller.errors import (
    FatalRequestError,
    ResourceAlreadyExistsError,
)
from arm_poller.locks import LockRegistry, resource_locks
from arm_poller.models import Deadline, PollingConfig, WireModel
from arm_poller.poller import submit_and_poll
from arm_poller.resource_ids import VirtualNetworkId, VirtualNetworkPeeringId
from arm_poller.state_change import StateChangeConf
from arm_poller.transport import ResourceManagerClient

PEERING_LOCK = "virtualNetworkPeering"
NOT_PROVISIONED_CODE = "ReferencedResourceNotProvisioned"


class SubResource(WireModel):
    id: Optional[str] = None


class VirtualNetworkPeeringProperties(WireModel):
    allow_virtual_network_access: Optional[bool] = None
    allow_forwarded_traffic: Optional[bool] = None
    allow_gateway_transit: Optional[bool] = None
    use_remote_gateways: Optional[bool] = None
    remote_virtual_network: Optional[SubResource] = None
    peering_state: Optional[str] = None
    provisioning_state: Optional[str] = None


class VirtualNetworkPeering(WireModel):
    id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    etag: Optional[str] = None
    properties: Optional[VirtualNetworkPeeringProperties] = None


class PeeringSettings(WireModel):
    """Desired configuration for a new peering"""

    remote_virtual_network_id: str
    allow_virtual_network_access: bool = True
    allow_forwarded_traffic: bool = False
    allow_gateway_transit: bool = False
    use_remote_gateways: bool = False

    def to_payload(self) -> dict:
        peering = VirtualNetworkPeering(
            properties=VirtualNetworkPeeringProperties(
                allow_virtual_network_access=self.allow_virtual_network_access,
                allow_forwarded_traffic=self.allow_forwarded_traffic,
                allow_gateway_transit=self.allow_gateway_transit,
                use_remote_gateways=self.use_remote_gateways,
                remote_virtual_network=SubResource(id=self.remote_virtual_network_id),
            )
        )
        return peering.model_dump(by_alias=True, exclude_none=True)


class PeeringChanges(WireModel):
    """Fields to change on an existing peering; unset fields are left alone"""

    allow_virtual_network_access: Optional[bool] = None
    allow_forwarded_traffic: Optional[bool] = None
    allow_gateway_transit: Optional[bool] = None
    use_remote_gateways: Optional[bool] = None


class VirtualNetworkPeeringClient:
    def __init__(
        self,
        client: ResourceManagerClient,
        locks: Optional[LockRegistry] = None,
        config: Optional[PollingConfig] = None,
    ):
        self.client = client
        self.locks = locks or resource_locks
        self.settings = client.settings
        self.config = config or self.settings.polling_config()
        self.timeouts = self.settings.timeouts()
        self.logger = logger

    async def _get(
        self, peering_id: VirtualNetworkPeeringId, deadline: Deadline
    ) -> Optional[VirtualNetworkPeering]:
        try:
            response = await self.client.get(
                peering_id.id(), timeout=min(self.settings.request_timeout, deadline.remaining())
            )
        except FatalRequestError as e:
            if e.status == 404:
                return None
            raise
        return decode_model(response, VirtualNetworkPeering)

    async def read(
        self, peering_id: VirtualNetworkPeeringId, timeout: Optional[float] = None
    ) -> Optional[VirtualNetworkPeering]:
        """Fetches the peering, or None when it no longer exists"""
        peering = await self._get(peering_id, self.timeouts.for_read(timeout))
        if peering is None:
            self.logger.info(f"{peering_id} was not found - removing from state")
            return None

        props = peering.properties
        if props and props.remote_virtual_network and props.remote_virtual_network.id:
            remote = VirtualNetworkId.parse(props.remote_virtual_network.id, insensitive=True)
            props.remote_virtual_network.id = remote.id()
        return peering

    def _create_refresh(
        self, peering_id: VirtualNetworkPeeringId, payload: dict, deadline: Deadline
    ):
        async def refresh():
            try:
                await submit_and_poll(
                    self.client,
                    "PUT",
                    peering_id.id(),
                    deadline,
                    json=payload,
                    params={"syncRemoteAddressSpace": "true"},
                    config=self.config,
                )
            except FatalRequestError as e:
                if e.status == 400 and e.code == NOT_PROVISIONED_CODE:
                    # the vnet was just created, or the other side is still peering
                    self.logger.info(f"Referenced resource for {peering_id} not provisioned yet")
                    return "Pending", "Pending"
                raise
            return "Succeeded", "Succeeded"

        return refresh

    async def create(
        self,
        peering_id: VirtualNetworkPeeringId,
        settings: PeeringSettings,
        timeout: Optional[float] = None,
    ) -> Optional[VirtualNetworkPeering]:
        deadline = self.timeouts.for_create(timeout)
        if await self._get(peering_id, deadline) is not None:
            raise ResourceAlreadyExistsError(peering_id.id())

        async with self.locks.hold(PEERING_LOCK):
            conf = StateChangeConf(
                refresh=self._create_refresh(peering_id, settings.to_payload(), deadline),
                pending=["Pending"],
                target=["Succeeded"],
                min_timeout=self.settings.peering_min_timeout,
                timeout=deadline.remaining(),
            )
            await conf.wait_for_state()

        self.logger.info(f"Created {peering_id}")
        return await self.read(peering_id)

    async def update(
        self,
        peering_id: VirtualNetworkPeeringId,
        changes: PeeringChanges,
        timeout: Optional[float] = None,
    ) -> Optional[VirtualNetworkPeering]:
        deadline = self.timeouts.for_update(timeout)

        async with self.locks.hold(PEERING_LOCK):
            existing = await self._get(peering_id, deadline)
            if existing is None:
                raise FatalRequestError(404, f"retrieving {peering_id}: not found")
            if existing.properties is None:
                raise FatalRequestError(None, f"retrieving {peering_id}: `properties` was nil")

            props = existing.properties.model_copy(
                update=changes.model_dump(exclude_none=True)
            )
            payload = VirtualNetworkPeering(properties=props).model_dump(
                by_alias=True, exclude_none=True
            )
            await submit_and_poll(
                self.client,
                "PUT",
                peering_id.id(),
                deadline,
                json=payload,
                params={"syncRemoteAddressSpace": "true"},
                config=self.config,
            )

        return await self.read(peering_id)

    async def delete(
        self, peering_id: VirtualNetworkPeeringId, timeout: Optional[float] = None
    ) -> None:
        deadline = self.timeouts.for_delete(timeout)

        async with self.locks.hold(PEERING_LOCK):
            await submit_and_poll(
                self.client, "DELETE", peering_id.id(), deadline, config=self.config
            )
        self.logger.info(f"Deleted {peering_id}")
