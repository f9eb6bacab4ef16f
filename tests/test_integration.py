"""
End-to-end flow through both directions of the bridge, in memory.
"""
import json

from workspace_bridge.bridge import SettingsBridge
from workspace_bridge.models import WorkspaceStatus
from workspace_bridge.watcher import StatusWatcher

SETTINGS_TOPIC = "workspace-settings"
STATUS_TOPIC = "workspace-status"


async def test_settings_to_status_round_trip(queue, store, operator, settings_payload, encode, eventually):
    """Settings create a Workspace; the controller's status comes back on the status topic."""
    watcher = StatusWatcher(store, queue, STATUS_TOPIC)
    await watcher.start()
    consumer = await queue.subscribe(SETTINGS_TOPIC, "workspace-manager")
    bridge = SettingsBridge(consumer, operator, receive_timeout=0.02)
    await bridge.start()

    await queue.publish(SETTINGS_TOPIC, encode(settings_payload()))
    await eventually(lambda: "geo-1" in store.objects)

    # Controller reconciles
    await store.set_status("geo-1", WorkspaceStatus(state="Pending"))
    await store.set_status("geo-1", WorkspaceStatus(state="Ready", namespace="ws-geo-1"))

    # Spec update leaves the status alone
    await queue.publish(SETTINGS_TOPIC, encode(settings_payload(status="updating")))
    await eventually(lambda: len(consumer.acked) == 2)

    await queue.publish(SETTINGS_TOPIC, encode(settings_payload(status="deleting")))
    await eventually(lambda: len(consumer.acked) == 3)
    await eventually(lambda: watcher.stats()["published"] == 2 and watcher.stats()["suppressed"] == 1)

    await bridge.stop()
    await watcher.stop()

    envelopes = [json.loads(raw) for raw in queue.published[STATUS_TOPIC]]
    assert [e["status"]["state"] for e in envelopes] == ["Pending", "Ready"]
    assert envelopes[-1] == {
        "workspaceName": "geo-1",
        "namespace": "workspaces",
        "status": {"state": "Ready", "namespace": "ws-geo-1"},
    }
    assert store.objects == {}
    assert watcher.stats()["suppressed"] == 1
