"""Presence registration and the scannable presence link.

Registering twice is not an error: the (assembly_id, voter_id) unique
constraint rejects the second insert and the existing row is returned.
"""

import os
import re
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional, Tuple
from urllib.parse import urlparse

import qrcode
from sqlalchemy.exc import IntegrityError

from ..database.models import Presence
from ..database.repository import AssemblyRepository
from ..logging import get_logger
from .errors import InvalidState, NotFound, ValidationError
from .states import AssemblyStatus
from .types import Actor, PresenceOutcome

logger = get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:5173"
PRESENCE_PATH = "/transparencia/assembleias/{assembly_id}/presenca"
PRESENCE_PATH_PATTERN = re.compile(r"/assembleias/(?P<assembly_id>[^/]+)/presenca/?$")


def build_presence_link(assembly_id: str, base_url: str = None) -> str:
    """Public URL that registers presence when visited.

    Args:
        assembly_id: Assembly id embedded in the link
        base_url: Site root (default from PUBLIC_BASE_URL env)
    """
    base_url = (base_url or os.getenv("PUBLIC_BASE_URL", DEFAULT_BASE_URL)).rstrip("/")
    return base_url + PRESENCE_PATH.format(assembly_id=assembly_id)


def parse_presence_link(link: str) -> str:
    """Extract the assembly id from a presence link.

    Raises:
        ValidationError: If the link is not a presence link
    """
    path = urlparse((link or "").strip()).path
    match = PRESENCE_PATH_PATTERN.search(path)
    if not match:
        raise ValidationError("Not a presence link")
    return match.group("assembly_id")


def render_presence_qr(link: str, box_size: int = 6, border: int = 2) -> bytes:
    """Render a presence link as a PNG QR code."""
    qr = qrcode.QRCode(box_size=box_size, border=border)
    qr.add_data(link)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffered = BytesIO()
    img.save(buffered, format="PNG")
    return buffered.getvalue()


@dataclass
class PresenceVisit:
    """Result of following a presence link.

    Attributes:
        outcome: registered, already_registered or unavailable
        assembly_id: Assembly the link points to
        assembly_title: Title to show on the landing page
        presence: The presence row (None when unavailable)
    """
    outcome: PresenceOutcome
    assembly_id: str
    assembly_title: str
    presence: Optional[Presence] = None


class PresenceRegistrar:
    """Records that a voter attended an assembly."""

    def __init__(self, repo: AssemblyRepository):
        self.repo = repo

    def register_presence(self, actor: Actor, assembly_id: str) -> Presence:
        """Register the actor at an in-progress assembly (idempotent).

        Raises:
            NotFound: Unknown assembly
            InvalidState: Assembly is not in progress
        """
        presence, _ = self._register(actor, assembly_id)
        return presence

    def _register(self, actor: Actor, assembly_id: str) -> Tuple[Presence, bool]:
        try:
            with self.repo.get_session() as session:
                assembly = self.repo.load_assembly(session, assembly_id)
                if assembly.status != AssemblyStatus.IN_PROGRESS:
                    raise InvalidState(
                        "Presence can only be registered while the assembly is in progress",
                        entity="assembly",
                        entity_id=assembly_id,
                        current=assembly.status.value,
                    )
                presence = self.repo.insert_presence(session, assembly_id, actor.voter_id)
        except IntegrityError:
            existing = self.repo.get_presence(assembly_id, actor.voter_id)
            if existing is None:
                raise
            logger.debug(f"Presence already registered at assembly {assembly_id}")
            return existing, False

        logger.info(f"Presence registered at assembly {assembly_id}")
        return presence, True

    def visit_presence_link(self, actor: Actor, link: str) -> PresenceVisit:
        """Handle a visit to a presence link.

        An assembly that is not in progress yields an "unavailable" visit
        rather than an error.

        Raises:
            ValidationError: Malformed link
            NotFound: Unknown assembly
        """
        assembly_id = parse_presence_link(link)
        assembly = self.repo.get_assembly(assembly_id)
        if assembly is None:
            raise NotFound("assembly", assembly_id)

        if assembly.status != AssemblyStatus.IN_PROGRESS:
            return PresenceVisit(PresenceOutcome.UNAVAILABLE, assembly_id, assembly.title)

        try:
            presence, created = self._register(actor, assembly_id)
        except InvalidState:
            # Assembly left in_progress between the two reads.
            return PresenceVisit(PresenceOutcome.UNAVAILABLE, assembly_id, assembly.title)

        outcome = PresenceOutcome.REGISTERED if created else PresenceOutcome.ALREADY_REGISTERED
        return PresenceVisit(outcome, assembly_id, assembly.title, presence)

    def list_presences(self, assembly_id: str) -> List[Presence]:
        """Attendance list in registration order."""
        return self.repo.list_presences(assembly_id)

    def count_presences(self, assembly_id: str) -> int:
        """Number of voters present."""
        return self.repo.count_presences(assembly_id)

    def has_registered(self, assembly_id: str, voter_id: str) -> bool:
        """Whether the voter is already registered at the assembly."""
        return self.repo.get_presence(assembly_id, voter_id) is not None
