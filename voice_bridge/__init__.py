"""
Realtime Voice Bridge - browser voice clients to a realtime AI voice model

This application accepts WebSocket connections from browser voice clients and
bridges each one to its own upstream realtime voice model session. Microphone
audio and JSON control messages flow upstream; generated audio, transcripts and
every other upstream event flow back to the client. Tool calls made by the model
are reconstructed from the streamed events and executed on the server.

Architecture Overview:
- FastAPI server exposing the /ws/voice WebSocket endpoint
- One ConnectionSupervisor per client connection, driven by a single ordered
  event queue
- Server-side tools (Gmail, allow-listed webhooks) executed over httpx

Key Components:
- bridge: The per-connection session bridge (supervisor, frame routing, turn
  finalization, tool-call aggregation, audio relay, generation gating)
- config: Constants, logging setup and environment-based settings
- handlers: Handlers for client control messages
- models: Client protocol messages, upstream event variants, session and
  conversation state
- services: Tool executor and Google credentials
- websocket_manager: Accepts client connections and runs their sessions

Getting Started:
1. Set up environment variables:
   - OPENAI_API_KEY: Your OpenAI API key (required)
   - PORT: Port to run the server on (default 8000)
   - HOST: Host to bind the server to (default 0.0.0.0)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the server:
   ```bash
   python run.py
   ```

3. Point the browser client at ws://your-server:8000/ws/voice
"""
