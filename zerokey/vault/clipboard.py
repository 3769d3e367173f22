"""
ClipboardGuard — Best-effort handoff of decrypted secrets to the system clipboard.

Security Note:
    This is best-effort only. Once a secret reaches the operating system
    clipboard, the OS, other applications and any clipboard-history feature
    may keep their own copy; nothing here can reach those. Python ``str``
    objects cannot be overwritten either, so "clearing" a str only drops
    this module's reference. Pass a ``bytearray`` to have it zeroed after
    the copy.
"""
import asyncio
import hashlib
import hmac
import logging
import secrets

import pyperclip

from .config import DEFAULT_CLIPBOARD_CLEAR_AFTER

logger = logging.getLogger("zerokey.vault")


class ClipboardGuard:
    """Copies secrets to the clipboard and clears them later if still there.

    Only an HMAC-SHA256 fingerprint of the last copied secret is kept, keyed
    with a random per-instance key, so the delayed clear can check the
    clipboard without holding the plaintext or an offline-guessable hash.
    """

    def __init__(self, clear_delay: float = DEFAULT_CLIPBOARD_CLEAR_AFTER):
        self.clear_delay = clear_delay
        self._fingerprint_key = secrets.token_bytes(32)
        self._fingerprint: bytes | None = None

    def _digest(self, value: str) -> bytes:
        return hmac.new(
            self._fingerprint_key,
            value.encode("utf-8", "surrogatepass"),
            hashlib.sha256,
        ).digest()

    def copy_secure(self, secret: str | bytearray) -> bool:
        """Place ``secret`` on the clipboard.

        Args:
            secret: Decrypted value. A bytearray is zeroed after copying.

        Returns:
            True if the clipboard accepted the value, False if no clipboard
            mechanism is available.
        """
        if isinstance(secret, bytearray):
            text = secret.decode("utf-8")
            secret[:] = bytes(len(secret))
        else:
            text = secret
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as err:
            logger.warning("Clipboard not available: %s", err)
            return False
        self._fingerprint = self._digest(text)
        del text, secret
        logger.warning(
            "Secret copied to clipboard; the OS clipboard or its history may retain it"
        )
        return True

    async def clear_later(self, delay: float | None = None) -> bool:
        """Blank the clipboard after ``delay`` seconds if it still holds our secret.

        Returns:
            True if the clipboard was cleared.
        """
        expected = self._fingerprint
        if expected is None:
            return False
        await asyncio.sleep(self.clear_delay if delay is None else delay)
        if self._fingerprint is expected:
            self._fingerprint = None
        try:
            current = pyperclip.paste()
            if not current or not hmac.compare_digest(self._digest(current), expected):
                return False
            pyperclip.copy("")
        except pyperclip.PyperclipException as err:
            logger.warning("Clipboard not available: %s", err)
            return False
        logger.debug("Clipboard cleared")
        return True
