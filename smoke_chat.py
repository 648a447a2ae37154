"""Manual smoke test against a running server.

Usage:
    python smoke_chat.py <token> <receiver_user_id>
"""
import asyncio
import json
import sys

import websockets


async def smoke(token: str, receiver_id: str) -> None:
    async with websockets.connect(f"ws://localhost:8000/ws/chat?token={token}") as ws:
        connected = json.loads(await ws.recv())
        print(f"Connected: {connected}")

        await ws.send(json.dumps({
            "type": "send",
            "receiverId": receiver_id,
            "content": "Hello from Python!",
        }))

        # Presence events may arrive first; wait for our own echo.
        while True:
            frame = json.loads(await ws.recv())
            print(f"Received: {frame}")
            if frame.get("type") in ("receiveMessage", "error"):
                break


if __name__ == "__main__":
    asyncio.run(smoke(sys.argv[1], sys.argv[2]))
