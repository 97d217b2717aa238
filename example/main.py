import asyncio

from arm_poller.config import Settings, configure_logging
from arm_poller.errors import DeadlineExceeded, PollerError
from arm_poller.models import Deadline, PollingConfig
from arm_poller.poller import submit_and_poll
from arm_poller.transport import ResourceManagerClient
from management_server import ManagementServer, ScriptedResponse

RESOURCE = "/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Network/virtualNetworks/vnet1"


async def status_changed(operation):
    print(f"Status changed to: {operation.state.value}")
    print(f"Polls so far: {operation.polls}")


async def main():
    configure_logging("INFO")
    server = ManagementServer()
    await server.start(port=8000)
    print(f"Server started on {server.base_url}")

    server.script(
        "PUT",
        RESOURCE,
        ScriptedResponse(
            status=201,
            body={"properties": {"provisioningState": "Creating"}},
            headers={"Azure-AsyncOperation": "{base_url}/operations/1", "Retry-After": "1"},
        ),
    )
    server.script(
        "GET",
        "/operations/1",
        ScriptedResponse(body={"status": "InProgress", "percentComplete": 40}),
        ScriptedResponse(status=503),
        ScriptedResponse(body={"status": "InProgress", "percentComplete": 80}),
        ScriptedResponse(body={"status": "Succeeded", "result": {"name": "vnet1"}}),
    )

    settings = Settings(base_url=server.base_url, api_version="2023-06-01")
    config = PollingConfig(initial_delay=1.0, max_delay=8.0, backoff_factor=3.0)

    async with ResourceManagerClient(settings=settings) as client:
        try:
            result = await submit_and_poll(
                client,
                "PUT",
                RESOURCE,
                Deadline.after(60),
                json={"location": "westeurope"},
                config=config,
                on_status_change=status_changed,
            )
            print(f"Final result: {result}")
        except DeadlineExceeded as e:
            print(f"Polling timed out: {e}")
        except PollerError as e:
            print(f"Error occurred: {e}")

    await server.stop()


if __name__ == "__main__":
    asyncio.run(main())
