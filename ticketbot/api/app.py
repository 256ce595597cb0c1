"""
Ticket Bot API

FastAPI application for staff tooling:
- Ticket queries (by channel, by author, open/closed)
- Open/close and assignee changes, persisted like chat changes
- Cancelling a ticket creation left hanging in its channel
- Ticket type configuration
- Registered step types
"""

from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..errors import (
    CatalogError,
    SelectorConflict,
    StepTypeNotFound,
    TicketError,
    TicketNotFound,
    TicketTypeNotFound,
)
from ..models.ticket import TicketType
from ..runtime import Runtime


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class AssignRequest(BaseModel):
    user: int


class StepTypeInfo(BaseModel):
    identifier: str
    name: str
    description: str
    emoji: str
    answer_type: str
    locks_channel: bool
    extension: Optional[str] = None


# =============================================================================
# APP SETUP
# =============================================================================

def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def create_app(runtime: Runtime) -> FastAPI:
    app = FastAPI(
        title="Ticket Bot",
        description="Chat-based ticket intake: tickets, ticket types and step types",
        version=__version__
    )
    app.state.runtime = runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # ERRORS
    # =========================================================================

    def error(code: int, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=code, content={"detail": str(exc)})

    @app.exception_handler(TicketNotFound)
    async def ticket_not_found(request: Request, exc: TicketNotFound):
        return error(status.HTTP_404_NOT_FOUND, exc)

    @app.exception_handler(TicketTypeNotFound)
    async def ticket_type_not_found(request: Request, exc: TicketTypeNotFound):
        return error(status.HTTP_404_NOT_FOUND, exc)

    @app.exception_handler(SelectorConflict)
    async def selector_conflict(request: Request, exc: SelectorConflict):
        return error(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(TicketError)
    async def ticket_error(request: Request, exc: TicketError):
        return error(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(CatalogError)
    async def catalog_error(request: Request, exc: CatalogError):
        return error(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)

    @app.exception_handler(StepTypeNotFound)
    async def step_type_not_found(request: Request, exc: StepTypeNotFound):
        return error(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    @app.get("/health")
    async def health_check(runtime: Runtime = Depends(get_runtime)):
        return {
            "status": "healthy" if runtime.started else "starting",
            "service": "ticketbot",
            "version": __version__
        }

    # =========================================================================
    # TICKET ENDPOINTS
    # =========================================================================

    @app.get("/tickets")
    async def list_tickets(
        open: Optional[bool] = None,
        runtime: Runtime = Depends(get_runtime)
    ) -> List[Dict[str, Any]]:
        """All tickets, optionally only open or only closed ones."""
        return [ticket.to_document() for ticket in runtime.tickets.all(open=open)]

    @app.get("/tickets/{channel}")
    async def get_ticket(channel: int, runtime: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
        return runtime.tickets.require(channel).to_document()

    @app.get("/users/{author}/tickets")
    async def get_user_tickets(author: int, runtime: Runtime = Depends(get_runtime)) -> List[Dict[str, Any]]:
        return [ticket.to_document() for ticket in runtime.tickets.by_author(author)]

    @app.post("/tickets/{channel}/open")
    async def open_ticket(channel: int, runtime: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
        ticket = await runtime.tickets.set_open(channel, True)
        return ticket.to_document()

    @app.post("/tickets/{channel}/close")
    async def close_ticket(channel: int, runtime: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
        ticket = await runtime.tickets.set_open(channel, False)
        return ticket.to_document()

    @app.post("/tickets/{channel}/assignees")
    async def assign(
        channel: int,
        request: AssignRequest,
        runtime: Runtime = Depends(get_runtime)
    ) -> Dict[str, Any]:
        """Assigning someone already assigned changes nothing."""
        changed = await runtime.tickets.assign(channel, request.user)
        return {"changed": changed, "ticket": runtime.tickets.require(channel).to_document()}

    @app.delete("/tickets/{channel}/assignees/{user}")
    async def unassign(channel: int, user: int, runtime: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
        changed = await runtime.tickets.unassign(channel, user)
        return {"changed": changed, "ticket": runtime.tickets.require(channel).to_document()}

    @app.post("/tickets/{channel}/wizard/cancel")
    async def cancel_wizard(channel: int, runtime: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
        """Abandon a ticket creation stuck in `channel` and free the channel."""
        return {"cancelled": await runtime.wizard.cancel(channel)}

    # =========================================================================
    # TICKET TYPE ENDPOINTS
    # =========================================================================

    @app.get("/ticket-types")
    async def list_ticket_types(runtime: Runtime = Depends(get_runtime)) -> List[Dict[str, Any]]:
        return runtime.catalog.documents()

    @app.post("/ticket-types", status_code=status.HTTP_201_CREATED)
    async def create_ticket_type(
        ticket_type: TicketType,
        runtime: Runtime = Depends(get_runtime)
    ) -> Dict[str, Any]:
        """
        Add a ticket type.

        409 when its emoji is taken, 422 when a step type is unknown or
        refuses its options.
        """
        created = await runtime.catalog.add(ticket_type)
        return created.to_document()

    @app.put("/ticket-types/{emoji}")
    async def replace_ticket_type(
        emoji: str,
        ticket_type: TicketType,
        runtime: Runtime = Depends(get_runtime)
    ) -> Dict[str, Any]:
        replaced = await runtime.catalog.replace(emoji, ticket_type)
        return replaced.to_document()

    # =========================================================================
    # STEP TYPE ENDPOINTS
    # =========================================================================

    @app.get("/step-types")
    async def list_step_types(runtime: Runtime = Depends(get_runtime)) -> List[StepTypeInfo]:
        return [
            StepTypeInfo(
                identifier=step_type.identifier,
                name=step_type.display_name,
                description=step_type.description,
                emoji=step_type.emoji,
                answer_type=step_type.answer_kind.value,
                locks_channel=step_type.locks_channel,
                extension=runtime.registry.owner_of(step_type.identifier)
            )
            for step_type in runtime.registry.all()
        ]

    return app
