import asyncio
import inspect
from typing import Any, Callable, Optional

from loguru import logger

from arm_poller.codec import decode_json, decode_model, provisioning_state
from arm_poller.errors import (
    DeadlineExceeded,
    FatalRequestError,
    OperationCancelled,
    RemoteOperationFailed,
    TransientTransportError,
)
from arm_poller.models import (
    ApiResponse,
    Deadline,
    ErrorDetail,
    Operation,
    OperationStatus,
    PollingConfig,
    PollingKind,
    PollState,
)
from arm_poller.transport import ResourceManagerClient

ASYNC_OPERATION_HEADER = "Azure-AsyncOperation"
LOCATION_HEADER = "Location"


def operation_from_response(method: str, resource_url: str, response: ApiResponse) -> Operation:
    """Works out how (and whether) a mutation's outcome has to be polled"""
    method = method.upper()
    async_url = response.header(ASYNC_OPERATION_HEADER)
    location_url = response.header(LOCATION_HEADER)
    operation = Operation(method=method, resource_url=resource_url, kind=PollingKind.done)

    if response.status == 204:
        operation.state = PollState.succeeded
        return operation

    if response.status in (200, 201):
        payload = decode_json(response)
        raw_state = provisioning_state(payload)
        state = PollState.succeeded if raw_state is None else PollState.from_status(raw_state)
        has_header = async_url is not None or location_url is not None
        # no body and no status header means nothing left to wait for
        if state.is_terminal and (payload is not None or not has_header):
            operation.state = state
            operation.payload = None if method == "DELETE" else payload
            if state is not PollState.succeeded:
                operation.error = ErrorDetail(
                    code=raw_state, message=f"provisioningState is {raw_state}"
                )
            return operation

    if async_url:
        operation.kind = PollingKind.async_operation
        operation.poll_url = async_url
    elif location_url:
        operation.kind = PollingKind.location
        operation.poll_url = location_url
    else:
        operation.kind = PollingKind.provisioning_state
        operation.poll_url = resource_url
    return operation


class Poller:
    def __init__(
        self,
        client: ResourceManagerClient,
        operation: Operation,
        config: Optional[PollingConfig] = None,
        on_status_change: Optional[Callable[[Operation], Any]] = None,
        retry_after: Optional[float] = None,
    ):
        self.client = client
        self.operation = operation
        self.config = config or client.settings.polling_config()
        self.on_status_change = on_status_change
        self.logger = logger
        self._retry_after = retry_after

    @property
    def done(self) -> bool:
        return self.operation.state.is_terminal

    async def _get_status_once(self, deadline: Deadline) -> ApiResponse:
        """Issues a single status request for the operation"""
        self.operation.polls += 1
        return await self.client.get(
            self.operation.poll_url,
            timeout=min(self.client.settings.request_timeout, deadline.remaining()),
        )

    def _classify(self, response: ApiResponse) -> PollState:
        op = self.operation

        if op.kind is PollingKind.async_operation:
            status = decode_model(response, OperationStatus) or OperationStatus()
            if status.status is None:
                # a 200 without any status marker is treated as finished
                state = PollState.succeeded if response.status == 200 else PollState.in_progress
            else:
                state = status.state
            if state is PollState.succeeded:
                op.payload = None if op.method == "DELETE" else status.result
            elif state.is_terminal:
                op.error = status.error or ErrorDetail(code=status.status)
            return state

        if op.kind is PollingKind.location:
            if response.status == 202:
                return PollState.in_progress
            op.payload = None if op.method == "DELETE" else decode_json(response)
            return PollState.succeeded

        payload = decode_json(response)
        raw_state = provisioning_state(payload)
        state = PollState.succeeded if raw_state is None else PollState.from_status(raw_state)
        if op.method == "DELETE":
            # the resource is gone only once it returns 404
            if state is PollState.succeeded:
                return PollState.in_progress
        elif state is PollState.succeeded:
            op.payload = payload
        if state in (PollState.failed, PollState.cancelled):
            op.error = ErrorDetail(code=raw_state, message=f"provisioningState is {raw_state}")
        return state

    def _is_gone(self, error: FatalRequestError) -> bool:
        return (
            error.status == 404
            and self.operation.method == "DELETE"
            and self.operation.kind is PollingKind.provisioning_state
        )

    async def _handle_status_change(self, last_state: PollState) -> None:
        """Invoke the status change callback if the state has changed"""
        if last_state == self.operation.state or self.on_status_change is None:
            return
        self.logger.debug(f"Operation state changed to {self.operation.state.value}")
        result = self.on_status_change(self.operation)
        if inspect.isawaitable(result):
            await result

    async def _wait_before_retry(self, attempt: int, deadline: Deadline) -> None:
        """Sleeps for the policy delay, cut short at the deadline"""
        delay = min(self.config.delay_for(attempt, self._retry_after), deadline.remaining())
        self.logger.debug(
            f"Operation still {self.operation.state.value}, waiting {delay:.2f}s before next poll"
        )
        await asyncio.sleep(delay)

    def _finish(self) -> Any:
        op = self.operation
        if op.state is PollState.succeeded:
            self.logger.info(f"{op.method} {op.resource_url} succeeded after {op.polls} polls")
            return op.payload

        error = op.error or ErrorDetail()
        self.logger.error(
            f"{op.method} {op.resource_url} finished as {op.state.value}: {error.message}"
        )
        if op.state is PollState.cancelled:
            raise OperationCancelled(op.state, error.message, error.code)
        raise RemoteOperationFailed(op.state, error.message, error.code)

    async def poll_until_done(self, deadline: Deadline) -> Any:
        """Poll until the operation reaches a terminal state or the deadline passes"""
        op = self.operation
        if op.kind is PollingKind.done or self.done:
            return self._finish()

        attempt = 0
        while True:
            if deadline.expired():
                raise DeadlineExceeded(deadline.timeout, op.state, op)
            await self._wait_before_retry(attempt, deadline)
            if deadline.expired():
                raise DeadlineExceeded(deadline.timeout, op.state, op)
            attempt += 1

            last_state = op.state
            try:
                response = await self._get_status_once(deadline)
            except TransientTransportError as polling_error:
                self.logger.warning(f"Transient error polling {op.poll_url}: {polling_error}")
                self._retry_after = polling_error.retry_after
                continue
            except FatalRequestError as polling_error:
                if not self._is_gone(polling_error):
                    raise
                op.state = PollState.succeeded
            else:
                self._retry_after = response.retry_after
                op.state = self._classify(response)

            await self._handle_status_change(last_state)
            if op.state.is_terminal:
                return self._finish()


def poller_from_response(
    client: ResourceManagerClient,
    method: str,
    resource_url: str,
    response: ApiResponse,
    config: Optional[PollingConfig] = None,
    on_status_change: Optional[Callable[[Operation], Any]] = None,
) -> Poller:
    operation = operation_from_response(method, resource_url, response)
    return Poller(
        client,
        operation,
        config=config,
        on_status_change=on_status_change,
        retry_after=response.retry_after,
    )


async def submit_and_poll(
    client: ResourceManagerClient,
    method: str,
    path: str,
    deadline: Deadline,
    *,
    json: Optional[Any] = None,
    params: Optional[dict[str, Any]] = None,
    config: Optional[PollingConfig] = None,
    on_status_change: Optional[Callable[[Operation], Any]] = None,
) -> Any:
    """Sends a mutating request and waits for its outcome"""
    if deadline.expired():
        raise DeadlineExceeded(deadline.timeout)
    response = await client.request(
        method,
        path,
        json=json,
        params=params,
        timeout=min(client.settings.request_timeout, deadline.remaining()),
    )
    poller = poller_from_response(
        client, method, client.url_for(path), response, config, on_status_change
    )
    return await poller.poll_until_done(deadline)
