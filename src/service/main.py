import os, uvicorn
from agents.alumni.app import build_app as build_alumni

AGENT_NAME = os.getenv("AGENT_NAME", "alumni")

if AGENT_NAME != "alumni":
    raise RuntimeError(f"Only the alumni agent is wired in this service. Got AGENT_NAME={AGENT_NAME}")

app = build_alumni()

if __name__ == "__main__":
    # Fast local run; uvicorn CLI also works
    port = int(os.getenv("PORT", "8001"))
    uvicorn.run("service.main:app", host="0.0.0.0", port=port, reload=False)
