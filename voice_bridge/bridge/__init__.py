"""
Bridge module: the per-connection session between a client and the upstream model.

Key components:
- supervisor: ConnectionSupervisor, which owns both connection lifecycles and
  applies session events one at a time from a single ordered queue.
- frame_router: Splits inbound client frames into audio and control messages.
- turn_accumulator: Buffers partial transcripts and finalizes each utterance once.
- tool_calls: Reconstructs streamed function calls and dispatches them.
- generation: Single-flight gate for response requests.
- audio_relay: Base64 audio framing in both directions.
- multiplexer: Forwards upstream events to the client in arrival order.
- upstream: WebSocket client for the realtime model.

Usage examples:
```python
from voice_bridge.bridge.supervisor import ConnectionSupervisor
from voice_bridge.bridge.upstream import RealtimeUpstreamClient

async def serve(websocket, settings, executor):
    supervisor = ConnectionSupervisor(
        websocket, RealtimeUpstreamClient(settings), executor, settings
    )
    await supervisor.run()  # returns once the session is torn down
```
"""

