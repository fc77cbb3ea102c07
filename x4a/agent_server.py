"""
X402 Agent Server - one paid query endpoint per agent identity.

Usage:
    x4a-agent AGENT_ID NAME DESCRIPTION WALLET_ADDRESS

All four arguments are optional. The listening port is derived from the
last four digits of AGENT_ID (see x4a.ports), so an agent's port is known to
any client that knows its id.

Every POST /query must carry a payment the x402 facilitator accepts; the
query handler never runs otherwise.
"""
import logging
import sys
from typing import Optional

import click
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.requests import Request

from .completion import CompletionClient, build_agent_messages
from .config import (
    AGENT_BASE_PORT,
    AGENT_PAYMENT_NETWORK,
    AGENT_QUERY_PRICE,
    API_HOST,
    DEFAULT_AGENT_DESCRIPTION,
    DEFAULT_AGENT_ID,
    DEFAULT_AGENT_NAME,
    DEFAULT_WALLET_ADDRESS,
    LOG_FORMAT,
    AgentIdentity,
    get_agent_settings,
)
from .errors import AgentPortError, BadRequestError
from .payment import PaymentGate, PaymentMiddleware, PaymentRequirements
from .ports import derive_agent_port

logger = logging.getLogger(__name__)

AGENT_FAILURE_MESSAGE = "Agent execution failed due to internal error."
MISSING_QUERY_MESSAGE = "Missing query in request body"
MISSING_KEY_MESSAGE = "OPENAI_API_KEY not configured."

QUERY_INPUT_SCHEMA = {
    "type": "object",
    "properties": {"query": {"type": "string"}},
    "required": ["query"],
}
QUERY_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {"result": {"type": "string"}},
}


class AgentQueryRequest(BaseModel):
    query: Optional[str] = None


class AgentQueryResponse(BaseModel):
    agentId: str
    agentName: str
    result: str


def build_query_requirements(identity: AgentIdentity) -> PaymentRequirements:
    """Payment requirements for POST /query on this agent."""
    return PaymentRequirements.for_price(
        AGENT_QUERY_PRICE,
        pay_to=identity.wallet_address,
        network=AGENT_PAYMENT_NETWORK,
        description=f"{identity.name}: {identity.description}",
        output_schema={"input": QUERY_INPUT_SCHEMA, "output": QUERY_OUTPUT_SCHEMA},
    )


def build_completion_client() -> CompletionClient:
    settings = get_agent_settings()
    return CompletionClient(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=settings.openai_model,
        timeout=settings.completion_timeout,
        missing_key_message=MISSING_KEY_MESSAGE,
    )


def build_payment_gate() -> PaymentGate:
    settings = get_agent_settings()
    return PaymentGate(settings.facilitator_url, timeout=settings.facilitator_timeout)


def create_agent_app(
    identity: AgentIdentity,
    completion: CompletionClient,
    gate: PaymentGate,
    port: Optional[int] = None,
) -> FastAPI:
    """
    Create the FastAPI app for one agent identity.

    The identity, completion client and payment gate are fixed for the
    lifetime of the app.
    """
    app = FastAPI(
        title=f"X402 Agent: {identity.name}",
        description=identity.description,
        version="0.1.0",
    )
    app.add_middleware(
        PaymentMiddleware,
        gate=gate,
        routes={"POST /query": build_query_requirements(identity)},
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": MISSING_QUERY_MESSAGE})

    @app.exception_handler(BadRequestError)
    async def bad_request_handler(request: Request, exc: BadRequestError):
        return JSONResponse(status_code=400, content={"error": exc.message})

    @app.get("/health")
    async def health():
        """Health check (not priced)"""
        return {
            "status": "OK",
            "agentId": identity.agent_id,
            "agentName": identity.name,
            "port": port,
        }

    @app.post("/query", response_model=AgentQueryResponse)
    async def query(request: AgentQueryRequest):
        """
        Answer a paid query.

        Upstream failures of any kind collapse into one generic 500 message;
        the detail only goes to the log.
        """
        if not request.query:
            raise BadRequestError(MISSING_QUERY_MESSAGE)

        logger.info(f"[{identity.name}] Received paid query: {request.query}")
        try:
            reply = await completion.complete(
                build_agent_messages(identity.name, identity.description, request.query)
            )
        except Exception as e:
            logger.error(f"Error processing query for {identity.name}: {e!r}")
            return JSONResponse(status_code=500, content={"error": AGENT_FAILURE_MESSAGE})

        return AgentQueryResponse(
            agentId=identity.agent_id,
            agentName=identity.name,
            result=reply.result,
        )

    return app


@click.command()
@click.argument("agent_id", required=False, default=DEFAULT_AGENT_ID)
@click.argument("name", required=False, default=DEFAULT_AGENT_NAME)
@click.argument("description", required=False, default=DEFAULT_AGENT_DESCRIPTION)
@click.argument("wallet_address", required=False, default=DEFAULT_WALLET_ADDRESS)
@click.option("--host", default=API_HOST, help="API host")
@click.option("--base-port", default=AGENT_BASE_PORT, type=int, help="Port of the agent with offset 0")
def main(agent_id: str, name: str, description: str, wallet_address: str, host: str, base_port: int):
    """Run one X402 agent server"""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    identity = AgentIdentity(
        agent_id=agent_id,
        name=name,
        description=description,
        wallet_address=wallet_address,
    )

    try:
        port = derive_agent_port(identity.agent_id, base_port)
    except AgentPortError as e:
        logger.error(f"Cannot start agent {identity.name}: {e.message}")
        sys.exit(2)

    completion = build_completion_client()
    if not completion.is_configured:
        logger.warning("OPENAI_API_KEY not set; every paid query will fail")

    app = create_agent_app(identity, completion, build_payment_gate(), port=port)
    logger.info(f"X402 Agent: {identity.name} deployed on port :{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
