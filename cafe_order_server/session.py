"""Per-session carts and the remembered guest profile."""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from .cart import CartStore
from .models import GuestProfile

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"
MAX_RECENT_ORDERS = 10


class SessionManager:
    """Owns one cart per session and persists the guest profile."""

    def __init__(self, session_file: Optional[str] = None) -> None:
        """
        Initialize the session manager.

        Args:
            session_file: Path to store the guest profile. Defaults to ~/.cafe_order_session.json
        """
        if session_file is None:
            session_file = str(Path.home() / ".cafe_order_session.json")
        self.session_file = session_file
        self.carts: dict[str, CartStore] = {}
        self.profile: GuestProfile = self._load_profile()

    def _load_profile(self) -> GuestProfile:
        """Load the guest profile from file if it exists."""
        if os.path.exists(self.session_file):
            try:
                with open(self.session_file, "r") as f:
                    return GuestProfile(**json.load(f))
            except (json.JSONDecodeError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring unreadable session file {self.session_file}: {e}")
        return GuestProfile()

    def _save_profile(self) -> None:
        """Write the profile. A failed write is logged; the in-memory profile stays current."""
        try:
            with open(self.session_file, "w") as f:
                json.dump(self.profile.model_dump(), f, indent=2)
            # Set restrictive permissions, the file holds a phone number
            os.chmod(self.session_file, 0o600)
        except OSError as e:
            logger.error(f"Could not save guest profile to {self.session_file}: {e}")

    def cart(self, session_id: str = DEFAULT_SESSION_ID) -> CartStore:
        """Cart of a session, created on first use."""
        if session_id not in self.carts:
            logger.info(f"New cart for session {session_id}")
            self.carts[session_id] = CartStore()
        return self.carts[session_id]

    def find_cart(self, session_id: str = DEFAULT_SESSION_ID) -> Optional[CartStore]:
        """Cart of a session if it has one. Never creates a cart."""
        return self.carts.get(session_id)

    def drop(self, session_id: str) -> None:
        """Forget a session's cart."""
        self.carts.pop(session_id, None)

    def remember_guest(self, name: str, phone: str) -> None:
        self.profile.name = name
        self.profile.phone = phone
        self._save_profile()

    def record_order(self, order_id: str) -> None:
        """Keep the most recent order ids, newest first."""
        recent = [order_id] + [o for o in self.profile.recent_order_ids if o != order_id]
        self.profile.recent_order_ids = recent[:MAX_RECENT_ORDERS]
        self._save_profile()

    def clear_profile(self) -> None:
        """Forget the guest and delete the file."""
        self.profile = GuestProfile()
        if os.path.exists(self.session_file):
            os.remove(self.session_file)
            logger.info("Guest profile cleared")
