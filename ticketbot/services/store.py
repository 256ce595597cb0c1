"""
Ticket Bot Document Store

The whole state lives in ONE JSON document:

    {
      "tickets": [{title, author, channel, open, assignees, steps}],
      "ticketTypes": [{name, description, emoji, steps}]
    }

Saving rewrites the whole document atomically (temp file + fsync +
os.replace) on a worker thread so the event loop never blocks on disk.

A record that fails validation or references an unknown step type is
skipped with a warning. Skipped records are kept verbatim and written
back on save, so data survives an extension that is temporarily missing.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Tuple

from pydantic import ValidationError

from ..errors import CatalogError, StepTypeNotFound, StoreError
from ..models.ticket import Ticket, TicketType
from .registry import StepTypeRegistry
from .tickets import validate_ticket_type

logger = logging.getLogger(__name__)

TICKETS_KEY = "tickets"
TICKET_TYPES_KEY = "ticketTypes"


def dump_document(document: Dict[str, Any]) -> str:
    """Stable text form: same document, same bytes."""
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


class JsonDocumentStore:
    """Loads and saves tickets and ticket types as one JSON document."""

    def __init__(self, path: Path, registry: StepTypeRegistry):
        self.path = Path(path)
        self.registry = registry
        self.skipped_tickets: List[Dict[str, Any]] = []
        self.skipped_ticket_types: List[Dict[str, Any]] = []
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Record conversion
    # -------------------------------------------------------------------------

    def parse_ticket(self, raw: Dict[str, Any]) -> Ticket:
        """
        Raises ValidationError for a malformed record, StepTypeNotFound
        when an answer's step type is unknown, ValueError when an
        answer's kind doesn't match its step type.
        """
        ticket = Ticket.model_validate(raw)
        for answer in ticket.steps:
            step_type = self.registry.resolve(answer.type)
            if step_type.answer_kind != answer.answer_type:
                raise ValueError(
                    f"Answer to {answer.title!r} is {answer.answer_type.value}, "
                    f"but {answer.type} answers are {step_type.answer_kind.value}"
                )
        return ticket

    def parse_ticket_type(self, raw: Dict[str, Any]) -> TicketType:
        ticket_type = TicketType.model_validate(raw)
        validate_ticket_type(ticket_type, self.registry)
        return ticket_type

    # -------------------------------------------------------------------------
    # Load / save
    # -------------------------------------------------------------------------

    async def load(self) -> Tuple[List[Ticket], List[TicketType]]:
        async with self._lock:
            document = await asyncio.to_thread(self._read)

        self.skipped_tickets = []
        self.skipped_ticket_types = []
        tickets: List[Ticket] = []
        ticket_types: List[TicketType] = []

        for raw in document.get(TICKETS_KEY, []):
            try:
                tickets.append(self.parse_ticket(raw))
            except (ValidationError, StepTypeNotFound, ValueError) as e:
                logger.warning("Skipping ticket %s: %s", _describe(raw, "channel"), e)
                self.skipped_tickets.append(raw)

        for raw in document.get(TICKET_TYPES_KEY, []):
            try:
                ticket_types.append(self.parse_ticket_type(raw))
            except (ValidationError, CatalogError, StepTypeNotFound, ValueError) as e:
                logger.warning("Skipping ticket type %s: %s", _describe(raw, "emoji"), e)
                self.skipped_ticket_types.append(raw)

        logger.info(
            "Loaded %d tickets and %d ticket types from %s (%d skipped)",
            len(tickets), len(ticket_types), self.path,
            len(self.skipped_tickets) + len(self.skipped_ticket_types)
        )
        return tickets, ticket_types

    async def save(self, tickets: List[Dict[str, Any]], ticket_types: List[Dict[str, Any]]) -> None:
        """Persist already serialized records, plus everything skipped on load."""
        document = {
            TICKETS_KEY: list(tickets) + self.skipped_tickets,
            TICKET_TYPES_KEY: list(ticket_types) + self.skipped_ticket_types,
        }
        text = dump_document(document)
        async with self._lock:
            await asyncio.to_thread(self._write, text)
        logger.debug("Saved %d tickets to %s", len(document[TICKETS_KEY]), self.path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            logger.info("No data file at %s, starting empty", self.path)
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise StoreError(f"{self.path} is not valid JSON: {e}") from e
        if not isinstance(document, dict):
            raise StoreError(f"{self.path} must hold a JSON object")
        return document

    def _write(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)


def _describe(raw: Any, key: str) -> str:
    if isinstance(raw, dict) and key in raw:
        return f"{key}={raw[key]!r}"
    return "<malformed>"
