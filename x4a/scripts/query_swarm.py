"""Query the local proxy and one paid agent server end to end."""
import asyncio
import json
import sys

from x4a.errors import ApiError
from x4a.sdk import X4AClient

SERVER_URL = "http://localhost:3000"
AGENT_ID = "RL-Agent-0007"
PAYER = "DemoPayer1111111111111111111111111111111111"


async def main():
    async with X4AClient(server_url=SERVER_URL) as sdk:
        print(f"Proxy health: {await sdk.health()}")

        reply = await sdk.submit_grok_query("ARB-01", "Scan SOL/USDC spreads", type="arbitrage")
        print(f"Proxy result: {reply['result']}")

        print(f"Agent {AGENT_ID} at {sdk.agent_url(AGENT_ID)}")
        try:
            await sdk.query_agent(AGENT_ID, "Best route for 10 SOL -> USDC?")
            print("  Agent answered without payment?!")
            return 1
        except ApiError as e:
            if e.status != 402:
                print(f"  Unexpected error: {e}")
                return 1
            requirements = json.loads(e.text)["accepts"][0]
            print(f"  Payment required: {requirements['maxAmountRequired']} to {requirements['payTo']}")

        payment = sdk.build_payment_header(PAYER, requirements)
        answer = await sdk.query_agent(AGENT_ID, "Best route for 10 SOL -> USDC?", payment=payment)
        print(f"  {answer['agentName']}: {answer['result']}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
