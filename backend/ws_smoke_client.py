"""
Drives one interview room against a running server started with QA_MODE=true.

    INVITE_TOKEN_SECRET=dev-secret QA_MODE=true uvicorn interview_room.main:app --port 9010
    INVITE_TOKEN_SECRET=dev-secret python ws_smoke_client.py
"""

import asyncio
import base64
import json
import os
import time
import uuid

import websockets

from interview_room.invites import issue_invite

BASE_URL = os.getenv("SMOKE_WS_URL", "ws://127.0.0.1:9010/ws/interview")
SECRET = os.getenv("INVITE_TOKEN_SECRET", "dev-secret")
ANSWER = "I owned the billing migration, split the monolith into three services and cut p95 latency by forty percent"


async def recv_until(ws, wanted: str, label: str, limit: int = 20) -> dict:
    for _ in range(limit):
        data = json.loads(await asyncio.wait_for(ws.recv(), timeout=10))
        print(label, data.get("type"))
        if data.get("type") == wanted:
            return data
        if data.get("type") == "error":
            raise RuntimeError(f"{label} got error: {data}")
    raise RuntimeError(f"{label} never received {wanted}")


async def run() -> None:
    interview_id = str(uuid.uuid4())
    token = issue_invite(interview_id, SECRET, int(time.time()) + 600, candidate_id="smoke-candidate")

    async with websockets.connect(BASE_URL) as candidate, websockets.connect(BASE_URL) as hr:
        await candidate.send(
            json.dumps({"type": "join-interview", "interviewId": interview_id, "candidateId": "smoke-candidate", "token": token})
        )
        await recv_until(candidate, "joined", "C")

        await hr.send(json.dumps({"type": "hr-join", "interviewId": interview_id, "hrUserId": "smoke-hr", "hrName": "Smoke"}))
        await recv_until(hr, "observer-joined", "H")

        await candidate.send(json.dumps({"type": "start-interview"}))
        await recv_until(candidate, "ai-question", "C")

        for turn in range(14):
            chunk = base64.b64encode(ANSWER.encode("utf-8")).decode("ascii")
            await candidate.send(json.dumps({"type": "candidate-audio", "chunk": chunk}))
            await candidate.send(json.dumps({"type": "candidate-audio-complete"}))
            wanted = "interview-complete" if turn == 13 else "ai-question"
            await recv_until(candidate, wanted, "C")

        completed = await recv_until(hr, "interview-completed", "H", limit=200)
        print("REPORT", json.dumps(completed.get("report"), indent=2))


if __name__ == "__main__":
    asyncio.run(run())
